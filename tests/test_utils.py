import pytest

from course_assistant.utils import (
    clamp,
    format_chat_id,
    normalize_text,
    readable_date,
    sanitize_text,
    sanitize_url,
    tokenize,
)


class TestNormalizeText:
    def test_lowercases_and_strips_diacritics(self):
        assert normalize_text("¡Hola, Señor Ñandú!") == "hola senor nandu"

    def test_punctuation_and_underscores_become_spaces(self):
        assert normalize_text("Curso_de-Electricidad...  Domiciliaria") == "curso de electricidad domiciliaria"

    def test_keeps_numbers(self):
        assert normalize_text("Cursos 2025/2026") == "cursos 2025 2026"

    def test_empty_inputs(self):
        assert normalize_text("") == ""
        assert normalize_text(None) == ""
        assert normalize_text("   ") == ""

    @pytest.mark.parametrize(
        "text",
        [
            "Panadería Artesanal",
            "  ¿Hay cursos en HUMAHUACA?  ",
            "a_b-c.d,e",
            "ÁÉÍÓÚ üñ ç",
            "**5 de enero** <a href='x'>link</a>",
            "ǅemal İstanbul ß",
            "",
        ],
    )
    def test_idempotent(self, text):
        once = normalize_text(text)
        assert normalize_text(once) == once


class TestTokenize:
    def test_splits_normalized_words(self):
        assert tokenize("Panadería, Artesanal!") == ["panaderia", "artesanal"]

    def test_empty(self):
        assert tokenize("  ") == []


class TestSanitizeText:
    def test_escapes_script_tags(self):
        result = sanitize_text("<script>alert(1)</script>")
        assert "<" not in result and ">" not in result
        assert result == "&lt;script&gt;alert(1)&lt;/script&gt;"

    def test_escapes_markdown_characters(self):
        result = sanitize_text("a *b* `c` _d_ {e}")
        for char in "*`_{}":
            assert char not in result

    def test_collapses_whitespace(self):
        assert sanitize_text("  hola \n\t mundo ") == "hola mundo"

    def test_none(self):
        assert sanitize_text(None) == ""


class TestSanitizeUrl:
    def test_keeps_underscores_in_form_urls(self):
        url = "https://docs.google.com/forms/d/e/1FAIpQLSc_abc/viewform"
        assert sanitize_url(url) == url

    def test_strips_markup(self):
        assert sanitize_url("<https://forms.gle/xyz>") == "https://forms.gle/xyz"

    def test_non_url_is_empty(self):
        assert sanitize_url("javascript:alert(1)") == ""
        assert sanitize_url(None) == ""


class TestClamp:
    def test_short_text_unchanged(self):
        assert clamp("hola", 10) == "hola"

    def test_long_text_gets_ellipsis(self):
        assert clamp("abcdef", 3) == "abc…"

    def test_default_limit(self):
        assert len(clamp("x" * 1500)) == 1201


class TestReadableDate:
    def test_iso_date(self):
        assert readable_date("2025-03-10") == "10 de marzo"

    def test_datetime_with_z(self):
        assert readable_date("2025-01-05T10:00:00Z") == "5 de enero"

    def test_offset_is_read_in_utc(self):
        assert readable_date("2025-01-01T01:00:00+03:00") == "31 de diciembre"

    def test_invalid_is_empty(self):
        assert readable_date("pronto") == ""
        assert readable_date("") == ""
        assert readable_date(None) == ""


class TestFormatChatId:
    def test_local_number(self):
        assert format_chat_id("0388 155-1234") == "543881551234@c.us"

    def test_international_number(self):
        assert format_chat_id("+54 9 388 123 4567") == "5493881234567@c.us"

    def test_existing_ids_pass_through(self):
        assert format_chat_id("12345@g.us") == "12345@g.us"
        assert format_chat_id("549388@c.us") == "549388@c.us"

    def test_empty(self):
        assert format_chat_id("") == ""
