"""Program endpoints: template catalog, lifecycle and macro history."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from api.deps import get_current_user_id
from core.clock import utc_today
from core.exceptions import NotFoundError
from core.logger import get_logger
from database.deps import get_db_read, get_db_write
from schemas import ProgramCreateRequest, ProgramResponse, ProgramUpdateRequest
from schemas.program_schema import (
    MacroHistoryResponse,
    ProgramOverviewResponse,
    TemplateMacrosRequest,
    TemplateMacrosResponse,
    TemplateResponse,
)
from services.program_manager import ProgramManager
from services.program_templates import PROGRAM_TEMPLATES, get_template, goal_for_template, nutrition_calculator

logger = get_logger("api.programs")
router = APIRouter(prefix="/api/programs", tags=["programs"])


@router.get("/templates", response_model=List[TemplateResponse])
def list_templates():
    return [
        TemplateResponse(
            id=t.id,
            name=t.name,
            description=t.description,
            calorie_modifier=t.calorie_modifier,
            protein_per_kg=t.protein_per_kg,
            fat_per_kg=t.fat_per_kg,
            goal=goal_for_template(t.id),
        )
        for t in PROGRAM_TEMPLATES
    ]


@router.post("/templates/{template_id}/macros", response_model=TemplateMacrosResponse)
def calculate_template_macros(template_id: str, payload: TemplateMacrosRequest):
    """Suggest starting targets for a template from the caller's body statistics.

    Raises:
        NotFoundError: If the template id is not in the catalog.
    """
    template = get_template(template_id)
    if template is None:
        raise NotFoundError("Template", template_id)
    macros = nutrition_calculator.calculate_macros(
        template, payload.age, payload.sex, payload.weight_kg, payload.height_cm, payload.activity_level)
    return TemplateMacrosResponse(template_id=template_id, **macros)


# Reading the active program may complete it lazily, hence the write session.
@router.get("", response_model=ProgramOverviewResponse)
def get_programs(history_limit: int = Query(10, ge=1, le=50), user_id: int = Depends(get_current_user_id),
                 db: Session = Depends(get_db_write)):
    """Return the caller's active program (if any) and their finished programs."""
    manager = ProgramManager(db)
    active = manager.get_active_program(user_id, utc_today())
    return ProgramOverviewResponse(
        active=ProgramResponse.model_validate(active) if active else None,
        history=[ProgramResponse.model_validate(p) for p in manager.list_history(user_id, history_limit)],
    )


@router.post("", response_model=ProgramResponse, status_code=201)
def create_program(payload: ProgramCreateRequest, user_id: int = Depends(get_current_user_id),
                   db: Session = Depends(get_db_write)):
    """Start a program. Any active program is cancelled and the goals are reseeded.

    Raises:
        ValidationError: If template, start date, duration or a target is missing.
        InvalidStateError: If a concurrent create for the caller won the race.
    """
    program = ProgramManager(db).create_program(
        user_id,
        template_id=payload.template_id,
        start_date=payload.start_date,
        duration_weeks=payload.duration_weeks,
        targets={'calories': payload.calories, 'protein': payload.protein,
                 'carbs': payload.carbs, 'fat': payload.fat},
        starting_weight_kg=payload.starting_weight_kg,
        target_weight_kg=payload.target_weight_kg,
        notes=payload.notes,
    )
    return program


@router.put("/{program_id}", response_model=ProgramResponse)
def update_program(program_id: int, payload: ProgramUpdateRequest, user_id: int = Depends(get_current_user_id),
                   db: Session = Depends(get_db_write)):
    return ProgramManager(db).update_program(
        user_id,
        program_id,
        status=payload.status,
        ending_weight_kg=payload.ending_weight_kg,
        notes=payload.notes,
        macros_locked=payload.macros_locked,
        targets={'calories': payload.calories, 'protein': payload.protein,
                 'carbs': payload.carbs, 'fat': payload.fat},
    )


@router.get("/{program_id}/macro-history", response_model=List[MacroHistoryResponse])
def get_macro_history(program_id: int, user_id: int = Depends(get_current_user_id),
                      db: Session = Depends(get_db_read)):
    return ProgramManager(db).macro_history(user_id, program_id)
