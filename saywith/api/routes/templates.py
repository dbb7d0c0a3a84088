"""Template catalog endpoint."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from ..dependencies import TemplateCatalogDep, UnlockedOperator

router = APIRouter()


class TemplateItem(BaseModel):
    value: str
    label: str


@router.get(
    "",
    response_model=list[TemplateItem],
    status_code=status.HTTP_200_OK,
    summary="List templates",
    description="Presentation templates a message can use, in display order",
)
async def list_templates(
    operator: UnlockedOperator = None,
    catalog: TemplateCatalogDep = None,
) -> list[TemplateItem]:
    return [TemplateItem(value=t.value, label=t.label) for t in catalog]
