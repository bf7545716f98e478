"""
Content units: one record shape with four type-specific payloads.

Why:
    A unit is a single logical entity (listed in a lecture, owned by a course)
    whose validation and owned resources depend on its type. The type tag
    selects a payload class and a `UnitVariant` from the `VARIANTS` dispatch
    table; services never probe for the presence of type-specific fields.

Variants:
    file       FilePayload      file_unit_type (file|video), files[]
    code-kata  CodeKataPayload  definition, code, test
    task       TaskPayload      tasks[] of questions with answers
    free-text  FreeTextPayload  text

Invariant:
    `ContentUnit.type` and the class of `ContentUnit.payload` always agree;
    construction fails otherwise.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union
from uuid import uuid4

from courseware.errors import ValidationError

FILE = "file"
CODE_KATA = "code-kata"
TASK = "task"
FREE_TEXT = "free-text"

FILE_UNIT_TYPES = frozenset({"file", "video"})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class FileRecord:
    path: str
    name: str
    alias: str
    size: int

    def to_dict(self) -> dict:
        return {"path": self.path, "name": self.name, "alias": self.alias, "size": self.size}


@dataclass(frozen=True)
class FilePayload:
    file_unit_type: str
    files: Tuple[FileRecord, ...] = ()


@dataclass(frozen=True)
class CodeKataPayload:
    definition: str
    code: str
    test: str

    def validate(self) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        for name in ("definition", "code", "test"):
            if not getattr(self, name).strip():
                errors[name] = "required"
        return errors


@dataclass(frozen=True)
class TaskAnswer:
    text: str
    value: bool = False


@dataclass(frozen=True)
class TaskQuestion:
    name: str
    answers: Tuple[TaskAnswer, ...] = ()


@dataclass(frozen=True)
class TaskPayload:
    tasks: Tuple[TaskQuestion, ...] = ()


@dataclass(frozen=True)
class FreeTextPayload:
    text: str


Payload = Union[FilePayload, CodeKataPayload, TaskPayload, FreeTextPayload]


@dataclass
class ContentUnit:
    id: str
    type: str
    name: str
    course_id: str
    payload: Payload
    description: str = ""
    markdown: str = ""
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def __post_init__(self) -> None:
        variant = VARIANTS.get(self.type)
        if variant is None:
            raise ValidationError("invalid_unit_type", {"type": f"unknown unit type {self.type!r}"})
        if not isinstance(self.payload, variant.payload_cls):
            raise ValidationError("payload_type_mismatch", {"type": "payload does not match unit type"})

    @property
    def files(self) -> Tuple[FileRecord, ...]:
        return VARIANTS[self.type].owned_files(self.payload)


@dataclass
class Lecture:
    id: str
    name: str
    course_id: Optional[str] = None
    units: List[str] = field(default_factory=list)


# --- Field coercion -----------------------------------------------------------------

def _text(fields: Mapping[str, Any], name: str, errors: Dict[str, str], *, required: bool = False) -> str:
    value = fields.get(name, "")
    if value is None:
        value = ""
    if not isinstance(value, str):
        errors[name] = "must be a string"
        return ""
    if required and not value.strip():
        errors[name] = "required"
    return value


def _file_records(value: Any, errors: Dict[str, str]) -> Tuple[FileRecord, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        errors["files"] = "must be a list"
        return ()
    records: List[FileRecord] = []
    for idx, item in enumerate(value):
        if isinstance(item, FileRecord):
            records.append(item)
            continue
        if not isinstance(item, Mapping):
            errors[f"files.{idx}"] = "must be an object"
            continue
        name = item.get("name")
        path = item.get("path")
        if not isinstance(name, str) or not name.strip():
            errors[f"files.{idx}.name"] = "required"
            continue
        if not isinstance(path, str) or not path.strip():
            errors[f"files.{idx}.path"] = "required"
            continue
        size = item.get("size", 0)
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            errors[f"files.{idx}.size"] = "must be a non-negative integer"
            continue
        alias = item.get("alias") or name
        records.append(FileRecord(path=path, name=name, alias=str(alias), size=size))
    return tuple(records)


def _tasks(value: Any, errors: Dict[str, str]) -> Tuple[TaskQuestion, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        errors["tasks"] = "must be a list"
        return ()
    questions: List[TaskQuestion] = []
    for idx, item in enumerate(value):
        if isinstance(item, TaskQuestion):
            questions.append(item)
            continue
        if not isinstance(item, Mapping):
            errors[f"tasks.{idx}"] = "must be an object"
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            errors[f"tasks.{idx}.name"] = "required"
            continue
        raw_answers = item.get("answers") or []
        if not isinstance(raw_answers, (list, tuple)):
            errors[f"tasks.{idx}.answers"] = "must be a list"
            continue
        answers: List[TaskAnswer] = []
        for a_idx, answer in enumerate(raw_answers):
            if not isinstance(answer, Mapping) or not isinstance(answer.get("text"), str):
                errors[f"tasks.{idx}.answers.{a_idx}"] = "text required"
                continue
            answers.append(TaskAnswer(text=answer["text"], value=bool(answer.get("value", False))))
        questions.append(TaskQuestion(name=name.strip(), answers=tuple(answers)))
    return tuple(questions)


# --- Variant hooks -------------------------------------------------------------------

def _build_file(fields: Mapping[str, Any], errors: Dict[str, str]) -> FilePayload:
    kind = fields.get("file_unit_type")
    if kind is None or kind == "":
        errors["file_unit_type"] = "required"
    elif kind not in FILE_UNIT_TYPES:
        errors["file_unit_type"] = "must be one of: file, video"
    if "files" in fields and fields["files"] is None:
        errors["files"] = "must be a list"
    files = _file_records(fields.get("files"), errors)
    return FilePayload(file_unit_type=str(kind or ""), files=files)


def _build_code_kata(fields: Mapping[str, Any], errors: Dict[str, str]) -> CodeKataPayload:
    payload = CodeKataPayload(
        definition=_text(fields, "definition", errors),
        code=_text(fields, "code", errors),
        test=_text(fields, "test", errors),
    )
    for name, message in payload.validate().items():
        errors.setdefault(name, message)
    return payload


def _build_task(fields: Mapping[str, Any], errors: Dict[str, str]) -> TaskPayload:
    if "tasks" in fields and fields["tasks"] is None:
        errors["tasks"] = "must be a list"
    return TaskPayload(tasks=_tasks(fields.get("tasks"), errors))


def _build_free_text(fields: Mapping[str, Any], errors: Dict[str, str]) -> FreeTextPayload:
    return FreeTextPayload(text=_text(fields, "text", errors, required=True))


def _payload_fields(payload: Payload) -> Dict[str, Any]:
    if isinstance(payload, FilePayload):
        return {"file_unit_type": payload.file_unit_type, "files": [f.to_dict() for f in payload.files]}
    if isinstance(payload, CodeKataPayload):
        return {"definition": payload.definition, "code": payload.code, "test": payload.test}
    if isinstance(payload, TaskPayload):
        return {
            "tasks": [
                {"name": q.name, "answers": [{"text": a.text, "value": a.value} for a in q.answers]}
                for q in payload.tasks
            ]
        }
    return {"text": payload.text}


@dataclass(frozen=True)
class UnitVariant:
    """Per-type hooks selected by the unit's tag."""

    tag: str
    payload_cls: type
    field_names: Tuple[str, ...]
    build_payload: Callable[[Mapping[str, Any], Dict[str, str]], Payload]

    def build(self, fields: Mapping[str, Any]) -> Payload:
        errors: Dict[str, str] = {}
        payload = self.build_payload(fields, errors)
        if errors:
            raise ValidationError("invalid_unit", errors)
        return payload

    def merge(self, payload: Payload, fields: Mapping[str, Any]) -> Payload:
        """Overlay present keys onto the current payload and re-validate."""
        combined = _payload_fields(payload)
        for name in self.field_names:
            if name in fields:
                combined[name] = fields[name]
        return self.build(combined)

    def owned_files(self, payload: Payload) -> Tuple[FileRecord, ...]:
        if isinstance(payload, FilePayload):
            return payload.files
        return ()


VARIANTS: Dict[str, UnitVariant] = {
    FILE: UnitVariant(FILE, FilePayload, ("file_unit_type", "files"), _build_file),
    CODE_KATA: UnitVariant(CODE_KATA, CodeKataPayload, ("definition", "code", "test"), _build_code_kata),
    TASK: UnitVariant(TASK, TaskPayload, ("tasks",), _build_task),
    FREE_TEXT: UnitVariant(FREE_TEXT, FreeTextPayload, ("text",), _build_free_text),
}

UNIT_TYPES = frozenset(VARIANTS)


def variant_for(tag: object) -> UnitVariant:
    variant = VARIANTS.get(tag) if isinstance(tag, str) else None
    if variant is None:
        raise ValidationError(
            "invalid_unit_type",
            {"type": "must be one of: " + ", ".join(sorted(UNIT_TYPES))},
        )
    return variant


def _common_fields(fields: Mapping[str, Any], errors: Dict[str, str], *, partial: bool) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if not partial or "name" in fields:
        name = _text(fields, "name", errors, required=True)
        out["name"] = name.strip()
    for key in ("description", "markdown"):
        if not partial or key in fields:
            out[key] = _text(fields, key, errors)
    if not partial or "course_id" in fields:
        course_id = fields.get("course_id")
        if not isinstance(course_id, str) or not course_id.strip():
            errors["course_id"] = "required"
        else:
            out["course_id"] = course_id.strip()
    return out


def build_unit(fields: Mapping[str, Any]) -> ContentUnit:
    """Validate creation fields and build a new unit.

    Field-level problems of the common part and the variant part are
    reported together in one ValidationError.
    """
    variant = variant_for(fields.get("type"))
    errors: Dict[str, str] = {}
    common = _common_fields(fields, errors, partial=False)
    payload = variant.build_payload(fields, errors)
    if errors:
        raise ValidationError("invalid_unit", errors)
    return ContentUnit(id=str(uuid4()), type=variant.tag, payload=payload, **common)


def merge_unit(unit: ContentUnit, fields: Mapping[str, Any]) -> ContentUnit:
    """Return a copy of `unit` with present fields replaced; others unchanged."""
    if "type" in fields and fields["type"] != unit.type:
        raise ValidationError("invalid_unit", {"type": "unit type cannot change"})
    if "id" in fields and fields["id"] not in (None, unit.id):
        raise ValidationError("invalid_unit", {"id": "unit id cannot change"})
    variant = VARIANTS[unit.type]
    errors: Dict[str, str] = {}
    common = _common_fields(fields, errors, partial=True)
    payload = unit.payload
    try:
        payload = variant.merge(unit.payload, fields)
    except ValidationError as exc:
        errors.update(exc.errors)
    if errors:
        raise ValidationError("invalid_unit", errors)
    return replace(unit, payload=payload, updated_at=_now_iso(), **common)


def unit_to_dict(unit: ContentUnit) -> dict:
    data = {
        "id": unit.id,
        "type": unit.type,
        "name": unit.name,
        "description": unit.description,
        "markdown": unit.markdown,
        "course_id": unit.course_id,
        "created_at": unit.created_at,
        "updated_at": unit.updated_at,
    }
    data.update(_payload_fields(unit.payload))
    return data


def unit_from_dict(data: Mapping[str, Any]) -> ContentUnit:
    """Rebuild a stored unit; stored data is trusted but still type-checked."""
    variant = variant_for(data.get("type"))
    return ContentUnit(
        id=str(data["id"]),
        type=variant.tag,
        name=str(data.get("name") or ""),
        course_id=str(data.get("course_id") or ""),
        description=str(data.get("description") or ""),
        markdown=str(data.get("markdown") or ""),
        payload=variant.build(data),
        created_at=str(data.get("created_at") or _now_iso()),
        updated_at=str(data.get("updated_at") or _now_iso()),
    )


__all__ = [
    "CODE_KATA",
    "CodeKataPayload",
    "ContentUnit",
    "FILE",
    "FILE_UNIT_TYPES",
    "FREE_TEXT",
    "FilePayload",
    "FileRecord",
    "FreeTextPayload",
    "Lecture",
    "TASK",
    "TaskAnswer",
    "TaskPayload",
    "TaskQuestion",
    "UNIT_TYPES",
    "UnitVariant",
    "VARIANTS",
    "build_unit",
    "merge_unit",
    "unit_from_dict",
    "unit_to_dict",
    "variant_for",
]
