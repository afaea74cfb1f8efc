"""Message template routes: CRUD and preview."""

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from back_office.services.message_templates import (
    create_template,
    delete_template,
    get_default_templates,
    get_template,
    get_templates,
    get_templates_by_type,
    preview_template,
    update_template,
)

router = APIRouter(prefix="/message-templates", tags=["Message templates"])


class TemplateIn(BaseModel):
    name: str
    type: str
    content: str
    channel: str = "line"
    subject: str | None = None
    variables: list[str] | None = None
    is_default: bool = False


class PreviewIn(BaseModel):
    content: str
    sample_data: dict[str, str] | None = None


@router.get("/")
async def template_list(type: str = Query("", description="Filter by phase type")):
    templates = get_templates_by_type(type) if type else get_templates()
    return {"results": templates}


@router.get("/defaults")
async def template_defaults():
    return {"results": get_default_templates()}


@router.post("/preview")
async def template_preview(body: PreviewIn):
    return {"preview": preview_template(body.content, body.sample_data)}


@router.post("/", status_code=201)
async def template_create(body: TemplateIn):
    try:
        return create_template(
            name=body.name,
            template_type=body.type,
            content=body.content,
            channel=body.channel,
            subject=body.subject,
            variables=body.variables,
            is_default=body.is_default,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{template_id}")
async def template_detail(template_id: str):
    template = get_template(template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.patch("/{template_id}")
async def template_update(template_id: str, body: dict):
    try:
        template = update_template(template_id, body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.delete("/{template_id}")
async def template_delete(template_id: str):
    if not delete_template(template_id):
        raise HTTPException(status_code=404, detail="Template not found")
    return {"status": "deleted"}
