from dataclasses import replace
from typing import List

import pytest

from course_assistant.catalog import CatalogStore, pick_course
from course_assistant.config import load_settings
from course_assistant.conversation_store import ConversationState
from course_assistant.grounding import GenerationRequest, GroundingContextBuilder
from course_assistant.prompt_loader import Instructions


def make_course(course_id, titulo, estado="inscripcion_abierta", **extra):
    raw = {"id": course_id, "titulo": titulo, "estado": estado}
    raw.update(extra)
    return pick_course(raw)


class FakeGenerator:
    """Records requests and returns a canned reply, or raises when given an exception."""

    def __init__(self, reply="Respuesta generada.", error=None):
        self.reply = reply
        self.error = error
        self.requests: List[GenerationRequest] = []

    def generate_reply(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def instructions():
    return Instructions(version="test-1", text="Eres Camila, asistente de cursos.")


@pytest.fixture
def catalog():
    return CatalogStore(
        [
            make_course(1, "Panadería Artesanal", "inscripcion_abierta", formulario="https://forms.gle/pan"),
            make_course(2, "Electricidad Domiciliaria", "finalizado", formulario="https://forms.gle/elec"),
            make_course(3, "Soldadura Básica", "cupo_completo"),
            make_course(4, "Reparación de Celulares", "en_curso"),
            make_course(5, "Peluquería y Barbería", "proximo", localidades=["San Pedro"]),
            make_course(6, "Electricidad Industrial", "ultimos_cupos"),
        ]
    )


@pytest.fixture
def builder(catalog, instructions):
    return GroundingContextBuilder(instructions=instructions, eligible_courses=catalog.eligible())


@pytest.fixture
def state():
    return ConversationState(conversation_id="5493881234567@c.us")


@pytest.fixture
def settings():
    return replace(load_settings(), gemini_api_key="", gateway_url="", gateway_token="")
