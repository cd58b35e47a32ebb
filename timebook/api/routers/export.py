from datetime import datetime
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from ...dates import export_filename
from ...errors import ValidationError
from ...export.generator import export_all_projects, export_project
from ...store import TimeStore
from ..dependencies import get_store


router = APIRouter(prefix="/export", tags=["export"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("")
def export(
    project: str | None = None,
    export_type: str = Query("single", alias="type"),
    store: TimeStore = Depends(get_store),
) -> Response:
    """Download an xlsx export of one project or of all projects."""
    if export_type == "all":
        content = export_all_projects(store)
        label = "all-projects"
    elif export_type == "single":
        if not project:
            raise ValidationError("Project name not specified")
        content = export_project(store, project)
        label = project
    else:
        raise ValidationError(f"Invalid export type: {export_type}")

    filename = export_filename(label, datetime.now())
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{quote(filename)}"'},
    )
