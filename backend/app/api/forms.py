"""
Forms API endpoints (record sources and their exportable fields).
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import List
from app.core.database import get_db
from app.core.auth import get_current_operator_dependency
from app.models.form import Form
from app.services.reports.fields import field_options, parse_field_specs

router = APIRouter()


class FormResponse(BaseModel):
    """Response model for a form."""
    id: int
    title: str


class FieldOptionResponse(BaseModel):
    """One selectable export column."""
    id: str
    label: str
    group: str  # 'system' or 'form'


@router.get("", response_model=List[FormResponse])
async def list_forms(
    db: Session = Depends(get_db),
    operator: dict = Depends(get_current_operator_dependency)
):
    """List forms that can be exported."""
    forms = db.query(Form).order_by(Form.title.asc()).all()
    return [FormResponse(id=form.id, title=form.title) for form in forms]


@router.get("/{form_id}/fields", response_model=List[FieldOptionResponse])
async def list_form_fields(
    form_id: int,
    db: Session = Depends(get_db),
    operator: dict = Depends(get_current_operator_dependency)
):
    """List exportable columns of a form: system fields first, then form fields."""
    form = db.query(Form).filter(Form.id == form_id).first()
    if not form:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Form not found"
        )
    return [FieldOptionResponse(**option) for option in field_options(parse_field_specs(form.fields))]
