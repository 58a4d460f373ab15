"""
Report data model.

Immutable value objects consumed by both emitters. ``ReportData.from_dict``
accepts the form's camelCase state object; derived values (line voltage,
load sub totals) are recomputed through the ``with_*`` operations, which
return new instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..config import DEFAULT_SIGNATURE_PATH
from ..engine.formatting import line_voltage_from_phase, sub_total_kw, total_kw
from ..exceptions import ReportDataError

# test point tag -> attribute name
POWER_TAGS: Tuple[Tuple[str, str], ...] = (
    ("ry", "ry"),
    ("yb", "yb"),
    ("br", "br"),
    ("rn", "rn"),
    ("yn", "yn"),
    ("bn", "bn"),
    ("ne", "ne"),
    ("r", "r"),
    ("y", "y"),
    ("b", "b"),
    ("n", "n"),
    ("frequency", "frequency"),
    ("powerFactor", "power_factor"),
)
TAG_TO_FIELD = dict(POWER_TAGS)
PHASE_TO_LINE = {"rn": "ry", "yn": "yb", "bn": "br"}

# nested camelCase groups in the form state
POWER_GROUPS = {
    "lineVoltage": ("ry", "yb", "br"),
    "phaseVoltage": ("rn", "yn", "bn"),
    "neutralEarth": ("ne",),
    "current": ("r", "y", "b", "n"),
}

INFO_FIELDS = {
    "branchName": "branch_name",
    "branchCode": "branch_code",
    "refNo": "ref_no",
    "date": "date",
    "inspectionDate": "inspection_date",
    "client": "client",
    "createdBy": "created_by",
    "approvedBy": "approved_by",
}


def _frozen_map(values: Optional[Mapping[str, str]] = None) -> Mapping[str, str]:
    return MappingProxyType(dict(values or {}))


def _as_text(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ReportDataError(f"Expected text for '{where}'", type(value).__name__)


def _as_mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ReportDataError(f"Expected an object for '{where}'", type(value).__name__)
    return value


def _as_sequence(value: Any, where: str) -> Sequence[Any]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise ReportDataError(f"Expected a list for '{where}'", type(value).__name__)
    return value


def _optional_ref(value: Any, where: str) -> Optional[str]:
    text = _as_text(value, where)
    return text or None


@dataclass(frozen=True)
class SnapshotGroup:
    images: Tuple[str, ...] = ()
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "snapshots") -> "SnapshotGroup":
        data = _as_mapping(data, where)
        images: List[str] = []
        for index, ref in enumerate(_as_sequence(data.get("images"), f"{where}.images")):
            text = _as_text(ref, f"{where}.images[{index}]")
            if text:
                images.append(text)
        # single-image form used by older form versions
        legacy = _as_text(data.get("image"), f"{where}.image")
        if legacy and not images:
            images.append(legacy)
        return cls(images=tuple(images), description=_as_text(data.get("description"), f"{where}.description"))


@dataclass(frozen=True)
class PowerParameters:
    ry: str = ""
    yb: str = ""
    br: str = ""
    rn: str = ""
    yn: str = ""
    bn: str = ""
    ne: str = ""
    r: str = ""
    y: str = ""
    b: str = ""
    n: str = ""
    frequency: str = ""
    power_factor: str = ""
    remarks: Mapping[str, str] = field(default_factory=_frozen_map)

    def value(self, tag: str) -> str:
        if tag not in TAG_TO_FIELD:
            raise KeyError(tag)
        return getattr(self, TAG_TO_FIELD[tag])

    def remark(self, tag: str) -> str:
        return self.remarks.get(tag, "")

    def with_phase_voltage(self, tag: str, value: str) -> "PowerParameters":
        """
        Set a phase voltage and recompute the matching line voltage.

        Args:
            tag: "rn", "yn" or "bn"
            value: New phase voltage reading (blank clears both)

        Returns:
            New PowerParameters instance
        """
        if tag not in PHASE_TO_LINE:
            raise ValueError(f"Not a phase voltage tag: {tag}")
        value = value or ""
        return replace(self, **{tag: value, PHASE_TO_LINE[tag]: line_voltage_from_phase(value)})

    def with_value(self, tag: str, value: str) -> "PowerParameters":
        if tag in PHASE_TO_LINE:
            return self.with_phase_voltage(tag, value)
        if tag not in TAG_TO_FIELD:
            raise KeyError(tag)
        return replace(self, **{TAG_TO_FIELD[tag]: value or ""})

    def with_remark(self, tag: str, remark: str) -> "PowerParameters":
        if tag not in TAG_TO_FIELD:
            raise KeyError(tag)
        remarks = dict(self.remarks)
        remarks[tag] = remark or ""
        return replace(self, remarks=_frozen_map(remarks))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PowerParameters":
        data = _as_mapping(data, "powerParameters")
        values: Dict[str, str] = {}
        for group, tags in POWER_GROUPS.items():
            group_data = _as_mapping(data.get(group), f"powerParameters.{group}")
            for tag in tags:
                values[TAG_TO_FIELD[tag]] = _as_text(group_data.get(tag), f"powerParameters.{group}.{tag}")
        values["frequency"] = _as_text(data.get("frequency"), "powerParameters.frequency")
        values["power_factor"] = _as_text(data.get("powerFactor"), "powerParameters.powerFactor")

        remarks_data = _as_mapping(data.get("remarks"), "powerParameters.remarks")
        remarks = {}
        for tag, remark in remarks_data.items():
            if tag in TAG_TO_FIELD:
                remarks[tag] = _as_text(remark, f"powerParameters.remarks.{tag}")

        params = cls(remarks=_frozen_map(remarks), **values)
        # line voltage is always derived from the phase reading when one is present
        for phase, line in PHASE_TO_LINE.items():
            if getattr(params, phase).strip():
                params = replace(params, **{line: line_voltage_from_phase(getattr(params, phase))})
        return params

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            group: {tag: self.value(tag) for tag in tags} for group, tags in POWER_GROUPS.items()
        }
        data["frequency"] = self.frequency
        data["powerFactor"] = self.power_factor
        data["remarks"] = dict(self.remarks)
        return data


@dataclass(frozen=True)
class LoadItem:
    type: str = ""
    power: str = ""
    qty: str = ""
    sub_total: str = ""

    @classmethod
    def create(cls, type: str = "", power: str = "", qty: str = "") -> "LoadItem":
        return cls(type=type, power=power, qty=qty, sub_total=sub_total_kw(power, qty))

    def with_power(self, value: str) -> "LoadItem":
        return replace(self, power=value, sub_total=sub_total_kw(value, self.qty))

    def with_qty(self, value: str) -> "LoadItem":
        return replace(self, qty=value, sub_total=sub_total_kw(self.power, value))

    def with_type(self, value: str) -> "LoadItem":
        return replace(self, type=value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], where: str = "connectedLoad") -> "LoadItem":
        data = _as_mapping(data, where)
        return cls.create(
            type=_as_text(data.get("type"), f"{where}.type"),
            power=_as_text(data.get("power"), f"{where}.power"),
            qty=_as_text(data.get("qty"), f"{where}.qty"),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "power": self.power, "qty": self.qty, "subTotal": self.sub_total}


@dataclass(frozen=True)
class ReportData:
    branch_name: str = ""
    branch_code: str = ""
    ref_no: str = ""
    date: str = ""
    inspection_date: str = ""
    client: str = ""
    created_by: str = ""
    approved_by: str = ""
    logo: Optional[str] = None
    signature: Optional[str] = None
    general_observations: Tuple[str, ...] = ()
    major_highlights: Tuple[str, ...] = ()
    snapshots: Tuple[SnapshotGroup, ...] = ()
    power_parameters: PowerParameters = field(default_factory=PowerParameters)
    connected_load: Tuple[LoadItem, ...] = ()
    conclusions: Tuple[str, ...] = ()

    @property
    def total_load_kw(self) -> str:
        return total_kw(item.sub_total for item in self.connected_load)

    def with_load_item(self, index: int, item: LoadItem) -> "ReportData":
        """Replace the load row at ``index``; ``index == len`` appends."""
        items = list(self.connected_load)
        if index == len(items):
            items.append(item)
        elif 0 <= index < len(items):
            items[index] = item
        else:
            raise IndexError(f"Load item index out of range: {index}")
        return replace(self, connected_load=tuple(items))

    def with_power_parameters(self, power_parameters: PowerParameters) -> "ReportData":
        return replace(self, power_parameters=power_parameters)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReportData":
        """
        Build report data from the form's camelCase state object.

        ``useDefaultSignature`` is resolved here: when true the bundled
        signature image replaces any uploaded one.

        Args:
            data: Form state mapping

        Returns:
            ReportData instance

        Raises:
            ReportDataError: If a field has the wrong container type
        """
        if not isinstance(data, Mapping):
            raise ReportDataError("Report data must be an object", type(data).__name__)

        values: Dict[str, Any] = {
            attr: _as_text(data.get(key), key) for key, attr in INFO_FIELDS.items()
        }

        signature = _optional_ref(data.get("signature"), "signature")
        if data.get("useDefaultSignature"):
            signature = str(DEFAULT_SIGNATURE_PATH)

        def texts(key: str) -> Tuple[str, ...]:
            return tuple(
                _as_text(item, f"{key}[{index}]")
                for index, item in enumerate(_as_sequence(data.get(key), key))
            )

        snapshots = tuple(
            SnapshotGroup.from_dict(item, f"snapshots[{index}]")
            for index, item in enumerate(_as_sequence(data.get("snapshots"), "snapshots"))
        )
        connected_load = tuple(
            LoadItem.from_dict(item, f"connectedLoad[{index}]")
            for index, item in enumerate(_as_sequence(data.get("connectedLoad"), "connectedLoad"))
        )

        return cls(
            logo=_optional_ref(data.get("logo"), "logo"),
            signature=signature,
            general_observations=texts("generalObservations"),
            major_highlights=texts("majorHighlights"),
            snapshots=snapshots,
            power_parameters=PowerParameters.from_dict(data.get("powerParameters")),
            connected_load=connected_load,
            conclusions=texts("conclusions"),
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {key: getattr(self, attr) for key, attr in INFO_FIELDS.items()}
        data.update({
            "logo": self.logo,
            "signature": self.signature,
            "generalObservations": list(self.general_observations),
            "majorHighlights": list(self.major_highlights),
            "snapshots": [
                {"images": list(group.images), "description": group.description}
                for group in self.snapshots
            ],
            "powerParameters": self.power_parameters.to_dict(),
            "connectedLoad": [item.to_dict() for item in self.connected_load],
            "conclusions": list(self.conclusions),
        })
        return data
