"""
Fit document schema and conversion.

The fit document is the JSON file a fit analysis is read from and written
to. Parsing is strict: required collections must be present and correctly
typed, nothing is silently defaulted, and any problem is reported as a
DocumentParseError carrying every validation error found.

Accepted spellings:
- ``garments`` or ``trails`` for the list of trials
- ``name``, ``garmentName`` or ``trailName`` for a trial's name
- ``points``, ``landmarks`` or ``garmentLandmark`` for a trial level's
  measured landmarks

Documents are always written back with the first spelling of each.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..geometry.primitives import Landmark, Point3D, as_points
from ..measurement.aggregation import MeasurementAggregator
from ..measurement.session import AggregatedLandmark, FitSession, LevelData, LevelResult, TrialData
from .logging import setup_logger

logger = setup_logger(__name__)

_METADATA_FIELDS = ("fit_name", "category", "subcategory", "date", "version", "tolerance", "unit")


class DocumentParseError(ValueError):
    """Invalid fit document. ``errors`` lists ``{loc, msg, type}`` entries."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class _DocModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Vec3(_DocModel):
    x: float
    y: float
    z: float

    @classmethod
    def of(cls, point) -> "Vec3":
        p = Point3D.from_array(point)
        return cls(x=p.x, y=p.y, z=p.z)

    def to_point(self) -> Point3D:
        return Point3D(self.x, self.y, self.z)


class BodyLandmarkModel(_DocModel):
    name: str
    point: Vec3
    color: Optional[str] = None


class BodyLevelModel(_DocModel):
    name: str
    intersection_points: List[Vec3] = Field(alias="intersectionPoints")
    landmarks: List[BodyLandmarkModel]


class BodyModel(_DocModel):
    body_name: Optional[str] = Field(default=None, alias="bodyName")
    levels: List[BodyLevelModel]


class TrialLandmarkModel(_DocModel):
    name: str
    body_point: Optional[Vec3] = Field(default=None, alias="bodyPoint")
    dress_point: Vec3 = Field(alias="dressPoint")
    distance: Optional[float] = None
    color: Optional[str] = None


class TrialLevelModel(_DocModel):
    name: str
    body_intersection_points: List[Vec3] = Field(alias="bodyIntersectionPoints")
    dress_intersection_points: List[Vec3] = Field(alias="dressIntersectionPoints")
    points: List[TrialLandmarkModel] = Field(
        validation_alias=AliasChoices("points", "landmarks", "garmentLandmark"),
        serialization_alias="points",
    )


class TrialModel(_DocModel):
    name: str = Field(
        validation_alias=AliasChoices("name", "garmentName", "trailName"),
        serialization_alias="name",
    )
    levels: List[TrialLevelModel]


class ValueLandmarkModel(_DocModel):
    name: str
    point: Vec3
    dis: float
    value: float
    avg: float


class ValueEntryModel(_DocModel):
    level_name: str = Field(alias="levelName")
    body_intersection_points: List[Vec3] = Field(alias="bodyIntersectionPoints")
    dress_intersection_points: List[Vec3] = Field(alias="dressIntersectionPoints")
    landmarks: List[ValueLandmarkModel]


class CriticalEntryModel(_DocModel):
    level: str
    landmark: str
    critical: bool


class FitDocument(_DocModel):
    file_name: str = Field(alias="fileName")
    body_levels: List[str] = Field(alias="bodyLevels")
    landmark_points: List[str] = Field(alias="landmarkPoints")
    critical_measurement: List[CriticalEntryModel] = Field(alias="criticalMeasurement")
    value: List[ValueEntryModel]
    garments: List[TrialModel] = Field(
        validation_alias=AliasChoices("garments", "trails"),
        serialization_alias="garments",
    )

    fit_name: Optional[str] = Field(default=None, alias="fitName")
    category: Optional[str] = None
    subcategory: Optional[str] = None
    date: Optional[str] = None
    version: Optional[str] = None
    tolerance: Optional[float] = None
    unit: Optional[float] = None
    body: Optional[BodyModel] = None


# -----------------------
# Parsing / writing
# -----------------------


def _format_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    return [{"loc": tuple(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]


def parse_document(source: Union[str, bytes, Mapping[str, Any]]) -> FitDocument:
    """
    Validate a fit document given as JSON text or an already-decoded mapping.

    Raises:
        DocumentParseError: On malformed JSON or any schema violation.
    """
    if isinstance(source, (str, bytes)):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as e:
            raise DocumentParseError(
                f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
                [{"loc": (), "msg": e.msg, "type": "json_invalid"}],
            ) from e
    else:
        data = source

    try:
        doc = FitDocument.model_validate(data)
    except ValidationError as e:
        errors = _format_errors(e)
        raise DocumentParseError(f"Invalid fit document ({len(errors)} errors)", errors) from e

    logger.debug(
        "Parsed fit document '%s': %d levels, %d landmarks, %d trials.",
        doc.file_name,
        len(doc.body_levels),
        len(doc.landmark_points),
        len(doc.garments),
    )
    return doc


def load_document(path: Union[str, Path]) -> FitDocument:
    """Read and validate a fit document from disk."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Fit document not found: {p}")
    try:
        return parse_document(p.read_text(encoding="utf-8"))
    except DocumentParseError as e:
        raise DocumentParseError(f"{p}: {e}", e.errors) from e


def dump_document(doc: FitDocument, indent: Optional[int] = 2) -> str:
    return doc.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


def save_document(doc: FitDocument, path: Union[str, Path]) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dump_document(doc), encoding="utf-8")
    logger.info("Wrote fit document to %s", p)
    return p


# -----------------------
# Session conversion
# -----------------------


def _points(vectors: List[Vec3]) -> np.ndarray:
    return as_points([[v.x, v.y, v.z] for v in vectors])


def _vectors(points) -> List[Vec3]:
    return [Vec3.of(p) for p in as_points(points)]


def _body_levels(doc: FitDocument, trials: List[TrialData]) -> List[LevelData]:
    if doc.body is not None:
        return [
            LevelData(
                name=lvl.name,
                contour=_points(lvl.intersection_points),
                landmarks=[
                    Landmark(name=lm.name, point=lm.point.to_point(), level=lvl.name, color=lm.color)
                    for lm in lvl.landmarks
                ],
            )
            for lvl in doc.body.levels
        ]

    # Without a body section, rebuild body levels from what the trials recorded.
    levels: List[LevelData] = []
    for name in doc.body_levels:
        level = LevelData(name=name)
        for trial in trials:
            t_level = trial.level(name)
            if t_level is None:
                continue
            if len(level.contour) == 0 and t_level.body_contour is not None:
                level.contour = t_level.body_contour
            if not level.landmarks:
                level.landmarks = [
                    Landmark(name=lm.name, point=lm.body_point, level=name, color=lm.color)
                    for lm in t_level.landmarks
                    if lm.body_point is not None
                ]
        if len(level.contour) == 0:
            entry = next((v for v in doc.value if v.level_name == name), None)
            if entry is not None:
                level.contour = _points(entry.body_intersection_points)
        levels.append(level)
    return levels


def session_from_document(doc: FitDocument) -> FitSession:
    """
    Build a FitSession from a parsed document.

    The measurement table is recomputed from the trials. Critical flags come
    from ``criticalMeasurement``; a stored ``value`` that differs from its
    ``avg`` is treated as a user override and kept.
    """
    trials = [
        TrialData(
            name=t.name,
            levels=[
                LevelData(
                    name=lvl.name,
                    contour=_points(lvl.dress_intersection_points),
                    body_contour=_points(lvl.body_intersection_points),
                    landmarks=[
                        Landmark(
                            name=lm.name,
                            point=lm.dress_point.to_point(),
                            level=lvl.name,
                            trial=t.name,
                            color=lm.color,
                            distance=lm.distance,
                            body_point=lm.body_point.to_point() if lm.body_point is not None else None,
                        )
                        for lm in lvl.points
                    ],
                )
                for lvl in t.levels
            ],
        )
        for t in doc.garments
    ]

    table = MeasurementAggregator().aggregate_scalar(trials, doc.body_levels, doc.landmark_points)
    for entry in doc.critical_measurement:
        table.set_critical(entry.level, entry.landmark, entry.critical)

    results: Dict[str, LevelResult] = {}
    for entry in doc.value:
        for lm in entry.landmarks:
            if lm.value != lm.avg and table.get(entry.level_name, lm.name) is not None:
                table.set_value(entry.level_name, lm.name, lm.value)
        results[entry.level_name] = LevelResult(
            level_name=entry.level_name,
            body_contour=_points(entry.body_intersection_points),
            garment_contour=_points(entry.dress_intersection_points),
            landmarks=[
                AggregatedLandmark(
                    name=lm.name, point=lm.point.to_point(), distance=lm.dis, value=lm.value, avg=lm.avg
                )
                for lm in entry.landmarks
            ],
        )

    metadata = {k: getattr(doc, k) for k in _METADATA_FIELDS if getattr(doc, k) is not None}
    if doc.body is not None and doc.body.body_name is not None:
        metadata["body_name"] = doc.body.body_name

    return FitSession(
        file_name=doc.file_name,
        level_names=list(doc.body_levels),
        landmark_names=list(doc.landmark_points),
        body_levels=_body_levels(doc, trials),
        trials=trials,
        table=table,
        results=results,
        metadata=metadata,
    )


def document_from_session(session: FitSession) -> FitDocument:
    """Serialise a FitSession back into the document model."""
    critical = []
    if session.table is not None:
        critical = [
            CriticalEntryModel(level=level, landmark=landmark, critical=flag)
            for level, landmark, flag in session.table.critical_entries()
        ]

    def _display_value(level: str, lm: AggregatedLandmark) -> float:
        cell = session.table.get(level, lm.name) if session.table is not None else None
        return cell.value if cell is not None else lm.value

    value = []
    for name in session.level_names:
        result = session.results.get(name)
        if result is None:
            continue
        value.append(
            ValueEntryModel(
                level_name=name,
                body_intersection_points=_vectors(result.body_contour),
                dress_intersection_points=_vectors(result.garment_contour),
                landmarks=[
                    ValueLandmarkModel(
                        name=lm.name,
                        point=Vec3.of(lm.point),
                        dis=lm.distance,
                        value=_display_value(name, lm),
                        avg=lm.avg,
                    )
                    for lm in result.landmarks
                ],
            )
        )

    garments = [
        TrialModel(
            name=trial.name,
            levels=[
                TrialLevelModel(
                    name=lvl.name,
                    body_intersection_points=_vectors(
                        lvl.body_contour if lvl.body_contour is not None else np.empty((0, 3))
                    ),
                    dress_intersection_points=_vectors(lvl.contour),
                    points=[
                        TrialLandmarkModel(
                            name=lm.name,
                            body_point=Vec3.of(lm.body_point) if lm.body_point is not None else None,
                            dress_point=Vec3.of(lm.point),
                            distance=lm.distance,
                            color=lm.color,
                        )
                        for lm in lvl.landmarks
                    ],
                )
                for lvl in trial.levels
            ],
        )
        for trial in session.trials
    ]

    body = None
    if session.body_levels:
        body = BodyModel(
            body_name=session.metadata.get("body_name"),
            levels=[
                BodyLevelModel(
                    name=lvl.name,
                    intersection_points=_vectors(lvl.contour),
                    landmarks=[
                        BodyLandmarkModel(name=lm.name, point=Vec3.of(lm.point), color=lm.color)
                        for lm in lvl.landmarks
                    ],
                )
                for lvl in session.body_levels
            ],
        )

    metadata = {k: session.metadata[k] for k in _METADATA_FIELDS if k in session.metadata}
    return FitDocument(
        file_name=session.file_name,
        body_levels=list(session.level_names),
        landmark_points=list(session.landmark_names),
        critical_measurement=critical,
        value=value,
        garments=garments,
        body=body,
        **metadata,
    )
