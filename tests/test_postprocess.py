import pytest

from course_assistant.postprocess import (
    POSTPROCESS_STEPS,
    RegistrationLink,
    deemphasize_dates,
    delink,
    extract_registration_link,
    postprocess_reply,
    reemphasize,
    strip_tags,
)


class TestTransforms:
    def test_deemphasize_dates(self):
        assert deemphasize_dates("empieza el **5 de enero**") == "empieza el 5 de enero"
        assert deemphasize_dates("el **12 de Marzo** y **jueves**") == "el 12 de Marzo y **jueves**"

    def test_reemphasize(self):
        assert reemphasize("**Panadería** y **Soldadura**") == "*Panadería* y *Soldadura*"

    def test_delink_markdown(self):
        assert delink("[inscripción](https://forms.gle/x)") == "inscripción: https://forms.gle/x"

    def test_delink_anchor(self):
        assert delink('<a href="https://forms.gle/x" target="_blank">Formulario</a>') == (
            "Formulario: https://forms.gle/x"
        )

    def test_strip_tags(self):
        assert strip_tags("<strong>Curso</strong><br/>") == "Curso"

    @pytest.mark.parametrize("name, step", POSTPROCESS_STEPS)
    def test_steps_leave_plain_text_alone(self, name, step):
        assert step("Hola, ¿en qué te ayudo?") == "Hola, ¿en qué te ayudo?"

    def test_step_order(self):
        assert [name for name, _ in POSTPROCESS_STEPS] == [
            "deemphasize_dates",
            "reemphasize",
            "delink",
            "strip_tags",
        ]


class TestExtractRegistrationLink:
    def test_anchor_and_strong_title(self):
        raw = '<strong>Panadería Artesanal</strong> <a href="https://forms.gle/pan">Inscribite</a>'
        assert extract_registration_link(raw) == RegistrationLink("Panadería Artesanal", "https://forms.gle/pan")

    def test_markdown_link_with_bold_title_skips_dates(self):
        raw = "El **5 de enero** empieza **Panadería**: [inscripción](https://docs.google.com/forms/d/e/a_b/viewform)"
        link = extract_registration_link(raw)
        assert link.title == "Panadería"
        assert link.url == "https://docs.google.com/forms/d/e/a_b/viewform"

    def test_missing_title_is_empty(self):
        assert extract_registration_link('<a href="https://forms.gle/x">aca</a>').title == ""

    def test_non_form_links_are_ignored(self):
        assert extract_registration_link('<a href="https://ejemplo.org">web</a>') is None
        assert extract_registration_link("sin links") is None


class TestPostprocessReply:
    def test_composed_rewrite(self):
        raw = (
            "Te recomiendo <strong>Panadería Artesanal</strong>, empieza el **10 de marzo**. "
            'Inscribite acá: <a href="https://forms.gle/pan">Formulario</a> o mirá '
            "[la web](https://ejemplo.org). **Importante**: traé DNI.\n"
        )
        result = postprocess_reply(raw)
        assert result.text == (
            "Te recomiendo Panadería Artesanal, empieza el 10 de marzo. "
            "Inscribite acá: Formulario: https://forms.gle/pan o mirá "
            "la web: https://ejemplo.org. *Importante*: traé DNI."
        )
        assert result.registration == RegistrationLink("Panadería Artesanal", "https://forms.gle/pan")

    def test_no_markup_remains(self):
        result = postprocess_reply('<p>**Hola**</p> <a href="https://forms.gle/a">form</a>')
        assert "<" not in result.text
        assert "**" not in result.text

    def test_empty_input(self):
        assert postprocess_reply("").text == ""
        assert postprocess_reply(None).registration is None
