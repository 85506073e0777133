from __future__ import annotations

"""Course catalog loader and read-only store.

This module loads the course JSON file into sanitized, immutable CourseRecord
objects and exposes the eligible subset the assistant may proactively suggest.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .utils import normalize_text, readable_date, sanitize_text, sanitize_url

logger = logging.getLogger("course_assistant.catalog")

MAX_CLASS_HOURS = 3
MAX_SCHEDULES = 8
MAX_LOCALITIES = 12
MAX_ADDRESSES = 8
MAX_OTHER_REQUIREMENTS = 10
MAX_MATERIALS = 30


class EnrollmentState(str, Enum):
    PROXIMO = "proximo"
    INSCRIPCION_ABIERTA = "inscripcion_abierta"
    ULTIMOS_CUPOS = "ultimos_cupos"
    EN_CURSO = "en_curso"
    FINALIZADO = "finalizado"
    CUPO_COMPLETO = "cupo_completo"


ELIGIBLE_STATES = frozenset(
    {EnrollmentState.PROXIMO, EnrollmentState.INSCRIPCION_ABIERTA, EnrollmentState.ULTIMOS_CUPOS}
)
CLOSED_STATES = frozenset(
    {EnrollmentState.EN_CURSO, EnrollmentState.FINALIZADO, EnrollmentState.CUPO_COMPLETO}
)

STATE_SYNONYMS = {
    "proximo": EnrollmentState.PROXIMO,
    "proximamente": EnrollmentState.PROXIMO,
    "inscripcion abierta": EnrollmentState.INSCRIPCION_ABIERTA,
    "inscripciones abiertas": EnrollmentState.INSCRIPCION_ABIERTA,
    "abierta": EnrollmentState.INSCRIPCION_ABIERTA,
    "abierto": EnrollmentState.INSCRIPCION_ABIERTA,
    "ultimos cupos": EnrollmentState.ULTIMOS_CUPOS,
    "en curso": EnrollmentState.EN_CURSO,
    "en": EnrollmentState.EN_CURSO,
    "finalizado": EnrollmentState.FINALIZADO,
    "finalizada": EnrollmentState.FINALIZADO,
    "cupo completo": EnrollmentState.CUPO_COMPLETO,
    "cupos completos": EnrollmentState.CUPO_COMPLETO,
    "completo": EnrollmentState.CUPO_COMPLETO,
}


@dataclass(frozen=True)
class Requirements:
    adult_only: bool = False
    driver_license: bool = False
    primary_complete: bool = False
    secondary_complete: bool = False
    other: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Materials:
    student_provided: Tuple[str, ...] = ()
    course_provided: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CourseRecord:
    """Sanitized, immutable view of one catalog course."""
    id: Any
    title: str
    short_description: str = ""
    long_description: str = ""
    activities: str = ""
    total_duration: str = ""
    start_date: str = ""
    start_date_readable: str = ""
    end_date: str = ""
    end_date_readable: str = ""
    weekly_frequency: str = "otro"
    class_hours: Tuple[Any, ...] = ()
    schedules: Tuple[str, ...] = ()
    localities: Tuple[str, ...] = ()
    addresses: Tuple[str, ...] = ()
    requirements: Requirements = field(default_factory=Requirements)
    materials: Materials = field(default_factory=Materials)
    registration_url: str = ""
    image: str = ""
    state: EnrollmentState = EnrollmentState.PROXIMO
    enrollment_start: str = ""
    enrollment_end: str = ""
    capacity: Optional[float] = None

    @property
    def is_eligible(self) -> bool:
        return self.state in ELIGIBLE_STATES

    def to_context(self) -> Dict[str, Any]:
        """Serialize with the catalog's own field names, as the instructions refer to them."""
        return {
            "id": self.id,
            "titulo": self.title,
            "descripcion_breve": self.short_description,
            "descripcion_completa": self.long_description,
            "actividades": self.activities,
            "duracion_total": self.total_duration,
            "fecha_inicio": self.start_date,
            "fecha_inicio_legible": self.start_date_readable,
            "fecha_fin": self.end_date,
            "fecha_fin_legible": self.end_date_readable,
            "frecuencia_semanal": self.weekly_frequency,
            "duracion_clase_horas": list(self.class_hours),
            "dias_horarios": list(self.schedules),
            "localidades": list(self.localities),
            "direcciones": list(self.addresses),
            "requisitos": {
                "mayor_18": self.requirements.adult_only,
                "carnet_conducir": self.requirements.driver_license,
                "primaria_completa": self.requirements.primary_complete,
                "secundaria_completa": self.requirements.secondary_complete,
                "otros": list(self.requirements.other),
            },
            "materiales": {
                "aporta_estudiante": list(self.materials.student_provided),
                "entrega_curso": list(self.materials.course_provided),
            },
            "formulario": self.registration_url,
            "imagen": self.image,
            "estado": self.state.value,
            "inscripcion_inicio": self.enrollment_start,
            "inscripcion_fin": self.enrollment_end,
            "cupos": self.capacity,
        }


@dataclass(frozen=True)
class CatalogMeta:
    """Metadata describing the loaded catalog file for logging."""
    file_name: str
    updated_at: str
    sha256: str
    count: int


def normalize_state(value: Any) -> EnrollmentState:
    """Purpose: Collapse casing, accent, and synonym variants into EnrollmentState.
    Inputs/Outputs: Input is the raw "estado" value; output is a canonical state.
    Side Effects / State: Logs a warning for unknown values.
    Dependencies: Uses normalize_text and STATE_SYNONYMS.
    Failure Modes: Missing or unknown values fall back to PROXIMO.
    If Removed: Hard rules and eligibility filtering cannot trust the state field.
    Testing Notes: "Cupos Completos" -> CUPO_COMPLETO; "En-Curso" -> EN_CURSO.
    """
    # Normalization turns separators ("_", "-") into single spaces before lookup.
    normalized = normalize_text(value)
    if not normalized:
        return EnrollmentState.PROXIMO
    state = STATE_SYNONYMS.get(normalized)
    if state is None:
        logger.warning("unknown course state=%r, using %s", value, EnrollmentState.PROXIMO.value)
        return EnrollmentState.PROXIMO
    return state


def _text_list(value: Any, limit: int) -> Tuple[str, ...]:
    # Non-list values are treated as absent.
    if not isinstance(value, list):
        return ()
    return tuple(sanitize_text(entry) for entry in value[:limit])


def _hours_list(value: Any) -> Tuple[Any, ...]:
    if not isinstance(value, list):
        return ()
    hours: List[Any] = []
    for entry in value[:MAX_CLASS_HOURS]:
        if isinstance(entry, (int, float)) and not isinstance(entry, bool):
            hours.append(entry)
        else:
            hours.append(sanitize_text(entry))
    return tuple(hours)


def _capacity(value: Any) -> Optional[float]:
    # Any finite number is kept as given; fractional capacities are not rounded.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value


def _iso(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def pick_course(raw: Dict[str, Any]) -> CourseRecord:
    """Purpose: Extract and sanitize one raw catalog entry into a CourseRecord.
    Inputs/Outputs: Input is a raw dict from the catalog file; output is a CourseRecord.
    Side Effects / State: None beyond state-normalization warnings.
    Dependencies: Uses sanitize_text, sanitize_url, readable_date, normalize_state.
    Failure Modes: Missing or wrongly-typed fields become empty defaults.
    If Removed: The store cannot build records and the assistant loses its catalog.
    Testing Notes: Verify list caps, escaping, and state synonyms.
    """
    # Every free-text field is escaped here; the form URL is reduced to a single clean link.
    requirements = raw.get("requisitos") if isinstance(raw.get("requisitos"), dict) else {}
    materials = raw.get("materiales") if isinstance(raw.get("materiales"), dict) else {}
    start_date = _iso(raw.get("fecha_inicio"))
    end_date = _iso(raw.get("fecha_fin"))
    frequency = raw.get("frecuencia_semanal")
    return CourseRecord(
        id=raw.get("id"),
        title=sanitize_text(raw.get("titulo")),
        short_description=sanitize_text(raw.get("descripcion_breve")),
        long_description=sanitize_text(raw.get("descripcion_completa")),
        activities=sanitize_text(raw.get("actividades")),
        total_duration=sanitize_text(raw.get("duracion_total")),
        start_date=start_date,
        start_date_readable=readable_date(start_date),
        end_date=end_date,
        end_date_readable=readable_date(end_date),
        weekly_frequency=sanitize_text(frequency) if frequency is not None else "otro",
        class_hours=_hours_list(raw.get("duracion_clase_horas")),
        schedules=_text_list(raw.get("dias_horarios"), MAX_SCHEDULES),
        localities=_text_list(raw.get("localidades"), MAX_LOCALITIES),
        addresses=_text_list(raw.get("direcciones"), MAX_ADDRESSES),
        requirements=Requirements(
            adult_only=bool(requirements.get("mayor_18")),
            driver_license=bool(requirements.get("carnet_conducir")),
            primary_complete=bool(requirements.get("primaria_completa")),
            secondary_complete=bool(requirements.get("secundaria_completa")),
            other=_text_list(requirements.get("otros"), MAX_OTHER_REQUIREMENTS),
        ),
        materials=Materials(
            student_provided=_text_list(materials.get("aporta_estudiante"), MAX_MATERIALS),
            course_provided=_text_list(materials.get("entrega_curso"), MAX_MATERIALS),
        ),
        registration_url=sanitize_url(raw.get("formulario")),
        image=sanitize_text(raw.get("imagen")),
        state=normalize_state(raw.get("estado")),
        enrollment_start=_iso(raw.get("inscripcion_inicio")),
        enrollment_end=_iso(raw.get("inscripcion_fin")),
        capacity=_capacity(raw.get("cupos")),
    )


class CatalogStore:
    """Read-only course catalog with a precomputed eligible subset."""

    def __init__(self, courses: Sequence[CourseRecord] = (), meta: Optional[CatalogMeta] = None) -> None:
        self._courses: Tuple[CourseRecord, ...] = tuple(courses)
        self._eligible: Tuple[CourseRecord, ...] = tuple(c for c in self._courses if c.is_eligible)
        self._closed: Tuple[CourseRecord, ...] = tuple(c for c in self._courses if not c.is_eligible)
        self._by_id: Dict[str, CourseRecord] = {str(c.id): c for c in self._courses if c.id is not None}
        self.meta = meta

    @classmethod
    def load(cls, path: Path) -> "CatalogStore":
        """Purpose: Load and sanitize the catalog file into a store.
        Inputs/Outputs: Input is a Path to the JSON catalog; returns a CatalogStore.
        Side Effects / State: Reads the file, computes sha256/mtime, logs the outcome.
        Dependencies: Uses json, hashlib, and pick_course.
        Failure Modes: Missing file, invalid JSON, or a non-array root log a warning
            and return an empty store; the assistant keeps answering, degraded.
        If Removed: The app has no way to read the course catalog.
        Testing Notes: Use tmp_path files for valid, missing, and malformed catalogs.
        """
        # Any read/parse/shape failure degrades to an empty catalog.
        try:
            raw_bytes = path.read_bytes()
            data = json.loads(raw_bytes.decode("utf-8-sig"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("could not load catalog path=%s error=%s", path, exc)
            return cls()

        if isinstance(data, dict):
            data = data.get("items", data.get("cursos"))
        if not isinstance(data, list):
            logger.warning("could not load catalog path=%s error=root is not an array", path)
            return cls()

        courses = [pick_course(item) for item in data if isinstance(item, dict)]
        meta = CatalogMeta(
            file_name=path.name,
            updated_at=datetime.fromtimestamp(path.stat().st_mtime).isoformat(),
            sha256=hashlib.sha256(raw_bytes).hexdigest(),
            count=len(courses),
        )
        store = cls(courses, meta)
        logger.info(
            "catalog loaded file=%s courses=%d eligible=%d sha256=%s",
            meta.file_name,
            meta.count,
            len(store.eligible()),
            meta.sha256[:12],
        )
        return store

    def all(self) -> Tuple[CourseRecord, ...]:
        return self._courses

    def eligible(self) -> Tuple[CourseRecord, ...]:
        return self._eligible

    def closed(self) -> Tuple[CourseRecord, ...]:
        return self._closed

    def get(self, course_id: Any) -> Optional[CourseRecord]:
        return self._by_id.get(str(course_id))

    def __len__(self) -> int:
        return len(self._courses)
