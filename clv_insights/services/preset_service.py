"""
Report preset store

Named report configurations saved per shop. Presets are created and deleted,
never updated.
"""
import json
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from clv_insights.models.report_preset import ReportPreset
from clv_insights.services.customer_report_service import CONFIG_KEYS
from clv_insights.utils.url_parsing import encode_params
from clv_insights.utils.logger import log


class PresetValidationError(ValueError):
    """User-facing problem with a preset submission"""


@dataclass
class PresetConfigDecode:
    """Result of decoding a stored preset config. `ok` is False for the empty fallback."""
    ok: bool
    config: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def empty(cls, error: str) -> "PresetConfigDecode":
        return cls(ok=False, config={}, error=error)


def decode_preset_config(raw: Optional[str]) -> PresetConfigDecode:
    """
    Decode a stored config. Malformed or non-object JSON yields the empty
    variant so one bad row can't break the preset list.
    """
    try:
        value = json.loads(raw or "{}")
    except (TypeError, ValueError) as e:
        return PresetConfigDecode.empty(f"invalid JSON: {e}")
    if not isinstance(value, dict):
        return PresetConfigDecode.empty(f"expected an object, got {type(value).__name__}")
    config = {k: str(v) for k, v in value.items() if k in CONFIG_KEYS and v not in (None, "")}
    return PresetConfigDecode(ok=True, config=config)


def config_from_form(form: Mapping[str, object]) -> Dict[str, str]:
    """Keep only known, non-empty string fields"""
    config = {}
    for key in CONFIG_KEYS:
        value = form.get(key)
        if isinstance(value, str) and value:
            config[key] = value
    return config


class PresetService:
    def __init__(self, db: Session, shop: str):
        self.db = db
        self.shop = shop

    def create(self, name: str, config: Dict[str, str]) -> ReportPreset:
        name = (name or "").strip()
        if not name:
            raise PresetValidationError("Report name is required.")

        preset = ReportPreset(shop=self.shop, name=name, config=json.dumps(config))
        self.db.add(preset)
        self.db.commit()
        self.db.refresh(preset)
        log.info(f"Saved report preset '{name}' for {self.shop}")
        return preset

    def delete(self, preset_id: str) -> bool:
        """
        Delete by id. The preset's shop is not checked against the caller's.
        Returns False when no preset had that id.
        """
        # TODO: scope the delete to self.shop once ownership rules are settled
        deleted = self.db.query(ReportPreset).filter(ReportPreset.id == preset_id).delete()
        self.db.commit()
        if not deleted:
            log.warning(f"Report preset {preset_id} not found; nothing deleted")
        return bool(deleted)

    def list_presets(self) -> List[dict]:
        """Presets for the shop, newest first, with their config as a query string"""
        presets = (
            self.db.query(ReportPreset)
            .filter(ReportPreset.shop == self.shop)
            .order_by(desc(ReportPreset.created_at))
            .all()
        )

        results = []
        for preset in presets:
            decoded = decode_preset_config(preset.config)
            if not decoded.ok:
                log.warning(f"Report preset {preset.id} has an unreadable config ({decoded.error}); showing it without filters")
            results.append({
                "id": preset.id,
                "name": preset.name,
                "params": encode_params(decoded.config, CONFIG_KEYS),
            })
        return results
