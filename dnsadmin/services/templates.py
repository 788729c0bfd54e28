"""
Template Service - reusable record bundles applied to zones
"""

import logging
import uuid
from typing import List, Optional

from ..models.templates import ZoneTemplate
from ..models.zones import ZoneRole
from .context import DnsContext
from .renderer import BindConfigWriter
from .resolver import detect_template_domain, remap_domain
from .zones import with_records


logger = logging.getLogger(__name__)


class TemplateService:
    """Zone template CRUD and application"""

    def __init__(self, ctx: DnsContext):
        self.ctx = ctx
        self.writer = BindConfigWriter(ctx)

    async def list_templates(self) -> List[ZoneTemplate]:
        return self.ctx.template_store.load()

    async def get_template(self, template_id: str) -> Optional[ZoneTemplate]:
        return next((t for t in self.ctx.template_store.load() if t.id == template_id), None)

    async def create_template(self, template: ZoneTemplate) -> Optional[ZoneTemplate]:
        """Save a template, replacing one with the same id; None when the store cannot be written"""
        new_template = template.model_copy(update={
            "id": template.id.strip() or str(uuid.uuid4()),
            "records": [
                r.model_copy(update={"id": r.id.strip() or str(uuid.uuid4())})
                for r in template.records
            ],
        })
        async with self.ctx.lock:
            try:
                self.ctx.template_store.update(
                    lambda templates: [t for t in templates if t.id != new_template.id] + [new_template]
                )
            except OSError:
                logger.exception(f"Failed to save template {new_template.name}")
                return None
        logger.info(f"Saved template {new_template.name} ({new_template.id})")
        return new_template

    async def delete_template(self, template_id: str) -> bool:
        async with self.ctx.lock:
            try:
                return self.ctx.template_store.update(
                    lambda templates: [t for t in templates if t.id != template_id]
                )
            except OSError:
                logger.exception(f"Failed to delete template {template_id}")
                return False

    async def apply_template(self, zone_id: str, template_id: str) -> bool:
        """Append the template's records to a zone, rewritten for the zone's domain"""
        template = await self.get_template(template_id)
        if not template:
            return False

        async with self.ctx.lock:
            zone = self.ctx.find_zone(zone_id)
            if not zone:
                return False

            template_domain = detect_template_domain(template.records)
            new_records = [
                r.model_copy(update={
                    "id": str(uuid.uuid4()),
                    "name": remap_domain(r.name, template_domain, zone.name),
                    "value": remap_domain(r.value, template_domain, zone.name),
                })
                for r in template.records
            ]

            updated = with_records(zone, zone.records + new_records)
            try:
                if updated.role == ZoneRole.MASTER:
                    self.writer.write_zone_file(updated)
                self.ctx.replace_zone(updated)
            except OSError:
                logger.exception(f"Failed to apply template {template.name} to {zone.name}")
                return False

            logger.info(f"Applied template {template.name} to {zone.name} ({len(new_records)} records)")
            await self.ctx.reload_bind()
            return True
