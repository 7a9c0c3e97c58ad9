"""
Form field shapes and header label resolution for entry exports.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union
import logging

logger = logging.getLogger(__name__)

# Entry columns that exist on every form, in picker order
SYSTEM_FIELDS: Dict[str, str] = {
    'id': 'Entry ID',
    'date_created': 'Submission Date',
    'ip': 'IP Address',
    'source_url': 'Source URL',
    'user_agent': 'User Agent',
    'payment_status': 'Payment Status',
    'payment_date': 'Payment Date',
    'transaction_id': 'Transaction ID',
    'created_by': 'Created By (User ID)',
}


@dataclass(frozen=True)
class SubInput:
    """One input of a composite field (e.g. the "First" part of a Name field)."""
    id: str
    label: str


@dataclass(frozen=True)
class SimpleField:
    """Field with a single value."""
    id: str
    label: str


@dataclass(frozen=True)
class CompositeField:
    """Field made of several sub-inputs, each stored under its own id."""
    id: str
    label: str
    inputs: List[SubInput] = field(default_factory=list)


FieldSpec = Union[SimpleField, CompositeField]


def parse_field_spec(raw: Dict[str, Any]) -> FieldSpec:
    """Build a FieldSpec from its stored JSON form.

    Args:
        raw: Dict with "id", "label" and "type" ("simple" or "composite").
            Composite fields carry an "inputs" list of {"id", "label"}.

    Returns:
        SimpleField or CompositeField
    """
    field_id = str(raw.get('id', ''))
    label = raw.get('label') or field_id
    if raw.get('type') == 'composite':
        inputs = [
            SubInput(id=str(item.get('id', '')), label=item.get('label') or '')
            for item in raw.get('inputs') or []
        ]
        return CompositeField(id=field_id, label=label, inputs=inputs)
    return SimpleField(id=field_id, label=label)


def parse_field_specs(raw_fields: Optional[Iterable[Dict[str, Any]]]) -> List[FieldSpec]:
    """Build the FieldSpec list of a form, skipping malformed definitions."""
    specs: List[FieldSpec] = []
    for raw in raw_fields or []:
        if not isinstance(raw, dict):
            logger.warning(f"Skipping malformed field definition: {raw!r}")
            continue
        specs.append(parse_field_spec(raw))
    return specs


def field_spec_to_dict(spec: FieldSpec) -> Dict[str, Any]:
    """Inverse of parse_field_spec, used when storing form definitions."""
    if isinstance(spec, CompositeField):
        return {
            'type': 'composite',
            'id': spec.id,
            'label': spec.label,
            'inputs': [{'id': sub.id, 'label': sub.label} for sub in spec.inputs],
        }
    return {'type': 'simple', 'id': spec.id, 'label': spec.label}


def resolve_label(
    field_id: str,
    schema: Iterable[FieldSpec],
    system_fields: Optional[Dict[str, str]] = None
) -> str:
    """Resolve the CSV header label for a selected field id.

    Lookup order: system fields, then the form schema (simple field ids and
    composite sub-input ids), then the raw id itself.

    Args:
        field_id: Selected field identifier
        schema: Form fields
        system_fields: System field table (defaults to SYSTEM_FIELDS)

    Returns:
        Display label; the field id when nothing matches
    """
    if system_fields is None:
        system_fields = SYSTEM_FIELDS
    field_id = str(field_id)

    if field_id in system_fields:
        return system_fields[field_id]

    for spec in schema:
        if isinstance(spec, CompositeField):
            for sub in spec.inputs:
                if sub.id == field_id:
                    return f"{spec.label} ({sub.label})"
            if spec.id == field_id:
                return spec.label
        elif spec.id == field_id:
            return spec.label

    return field_id


def field_options(
    schema: Iterable[FieldSpec],
    include_system: bool = True
) -> List[Dict[str, str]]:
    """Flatten a form schema into selectable export columns.

    Composite fields contribute one option per sub-input, labelled
    "Parent (Sub)"; system fields come first when requested.
    """
    options: List[Dict[str, str]] = []
    if include_system:
        options.extend({'id': fid, 'label': label, 'group': 'system'} for fid, label in SYSTEM_FIELDS.items())

    for spec in schema:
        if isinstance(spec, CompositeField) and spec.inputs:
            for sub in spec.inputs:
                options.append({'id': sub.id, 'label': f"{spec.label} ({sub.label})", 'group': 'form'})
        else:
            options.append({'id': spec.id, 'label': spec.label, 'group': 'form'})
    return options
