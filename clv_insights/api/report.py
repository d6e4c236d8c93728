"""
Customer Report API

GET renders the filtered/sorted/paginated report (or the CSV export);
POST saves or deletes named presets.
"""
import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from clv_insights.api.deps import get_report_service, get_shop
from clv_insights.connectors.shopify_graphql import ShopifyQueryError
from clv_insights.models.base import get_db
from clv_insights.services.csv_export import CSV_MEDIA_TYPE, build_csv, export_filename
from clv_insights.services.customer_report_service import CustomerReportService, ReportParams
from clv_insights.services.preset_service import PresetService, PresetValidationError, config_from_form
from clv_insights.utils.logger import log

router = APIRouter(prefix="/report", tags=["report"])


@router.get("")
async def get_report(
    request: Request,
    service: CustomerReportService = Depends(get_report_service),
    db: Session = Depends(get_db),
    shop: str = Depends(get_shop),
):
    """Customer report page payload, or a CSV download when export=csv."""
    params = ReportParams.from_query(request.query_params)
    try:
        report = await service.build_report(params)

        if params.export_csv:
            filename = export_filename()
            log.info(f"Exporting {len(report.customers)} customers to {filename}")
            return Response(
                content=build_csv(report.customers),
                media_type=CSV_MEDIA_TYPE,
                headers={"Content-Disposition": f'attachment; filename="{filename}"'},
            )

        presets = PresetService(db, shop).list_presets()
        return {"success": True, "data": report.to_dict(presets=presets)}
    except (ShopifyQueryError, httpx.HTTPError) as e:
        log.error(f"Error in /report: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        log.error(f"Error in /report: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("")
async def report_action(
    request: Request,
    db: Session = Depends(get_db),
    shop: str = Depends(get_shop),
):
    """Save (intent=save) or delete (intent=delete) a report preset."""
    form = await request.form()
    intent = str(form.get("intent") or "")
    presets = PresetService(db, shop)

    if intent == "save":
        try:
            presets.create(str(form.get("report_name") or ""), config_from_form(form))
        except PresetValidationError as e:
            return {"ok": False, "error": str(e)}
        return {"ok": True}

    if intent == "delete":
        preset_id = str(form.get("preset_id") or "")
        if preset_id:
            presets.delete(preset_id)
        return {"ok": True}

    return {"ok": False, "error": "Unknown action."}
