"""
Access Service - named ACLs and TSIG keys
Both are persisted as JSON and rendered into their own named.conf fragment
"""

import base64
import logging
import re
import secrets
import uuid
from typing import List, Optional

from ..models.acls import DnsAcl, TsigAlgorithm, TsigKey
from .context import DnsContext
from .renderer import BindConfigWriter
from .resolver import sanitize_acl_entries


logger = logging.getLogger(__name__)

_SECRET_LINE = re.compile(r'secret\s+"([^"]+)"')
_KEY_ENTRY = re.compile(r'^key\s+"?([a-zA-Z0-9._-]+)"?$')


def mask_secret(secret: str) -> str:
    """Show only the first and last four characters"""
    if len(secret) > 8:
        return f"{secret[:4]}****{secret[-4:]}"
    return "****"


def clean_acl_entries(entries: List[str]) -> List[str]:
    """Sanitized ACL entries; `key <name>` references are kept"""
    cleaned = []
    for entry in entries:
        match = _KEY_ENTRY.match(entry.strip())
        if match:
            cleaned.append(f"key {match.group(1)}")
        else:
            cleaned.extend(sanitize_acl_entries([entry]))
    return cleaned


class AccessService:
    """ACL and TSIG key management"""

    def __init__(self, ctx: DnsContext):
        self.ctx = ctx
        self.writer = BindConfigWriter(ctx)

    # =========================================================================
    # ACLs
    # =========================================================================

    async def list_acls(self) -> List[DnsAcl]:
        return self.ctx.acl_store.load()

    async def get_acl(self, acl_id: str) -> Optional[DnsAcl]:
        return next((a for a in self.ctx.acl_store.load() if a.id == acl_id), None)

    async def create_acl(self, acl: DnsAcl) -> Optional[DnsAcl]:
        """Create an ACL; None if the name is taken"""
        new_acl = acl.model_copy(update={
            "id": acl.id.strip() or str(uuid.uuid4()),
            "entries": clean_acl_entries(acl.entries),
        })

        async with self.ctx.lock:
            acls = self.ctx.acl_store.load()
            if any(a.name == new_acl.name for a in acls):
                logger.warning(f"ACL '{new_acl.name}' already exists")
                return None

            acls = acls + [new_acl]
            try:
                self.ctx.acl_store.save(acls)
                self.writer.write_acls(acls)
            except OSError:
                logger.exception(f"Failed to write ACL {new_acl.name}")
                return None

            logger.info(f"Created ACL {new_acl.name}")
            await self.ctx.reload_bind()
            return new_acl

    async def update_acl(self, acl_id: str, acl: DnsAcl) -> Optional[DnsAcl]:
        async with self.ctx.lock:
            acls = self.ctx.acl_store.load()
            existing = next((a for a in acls if a.id == acl_id), None)
            if not existing:
                return None
            if any(a.name == acl.name and a.id != acl_id for a in acls):
                logger.warning(f"ACL '{acl.name}' already exists")
                return None

            updated = acl.model_copy(update={"id": acl_id, "entries": clean_acl_entries(acl.entries)})
            acls = [updated if a.id == acl_id else a for a in acls]
            try:
                self.ctx.acl_store.save(acls)
                self.writer.write_acls(acls)
            except OSError:
                logger.exception(f"Failed to update ACL {acl.name}")
                return None

            await self.ctx.reload_bind()
            return updated

    async def delete_acl(self, acl_id: str) -> bool:
        async with self.ctx.lock:
            try:
                changed = self.ctx.acl_store.update(lambda acls: [a for a in acls if a.id != acl_id])
                if not changed:
                    return False
                self.writer.write_acls(self.ctx.acl_store.load())
            except OSError:
                logger.exception(f"Failed to delete ACL {acl_id}")
                return False

            await self.ctx.reload_bind()
            return True

    # =========================================================================
    # TSIG Keys
    # =========================================================================

    async def list_tsig_keys(self) -> List[TsigKey]:
        """Keys with masked secrets"""
        return [
            k.model_copy(update={"secret": mask_secret(k.secret)})
            for k in self.ctx.tsig_store.load()
        ]

    async def _generate_secret(self, algorithm: TsigAlgorithm) -> str:
        result = await self.ctx.gateway.run(
            f"{self.ctx.settings.bind9_tsig_keygen} -a {algorithm.value} temp-key"
        )
        if result.ok:
            match = _SECRET_LINE.search(result.stdout)
            if match:
                return match.group(1)

        logger.warning(f"tsig-keygen unavailable ({result.message}), generating secret locally")
        return base64.b64encode(secrets.token_bytes(algorithm.digest_size)).decode()

    async def create_tsig_key(self, key: TsigKey) -> Optional[TsigKey]:
        """Create a key; the returned copy carries the masked secret"""
        async with self.ctx.lock:
            keys = self.ctx.tsig_store.load()
            if any(k.name == key.name for k in keys):
                logger.warning(f"TSIG key '{key.name}' already exists")
                return None

            secret = key.secret.strip() or await self._generate_secret(key.algorithm)
            new_key = key.model_copy(update={
                "id": key.id.strip() or str(uuid.uuid4()),
                "secret": secret,
            })

            keys = keys + [new_key]
            try:
                self.ctx.tsig_store.save(keys)
                self.writer.write_tsig_keys(keys)
            except OSError:
                logger.exception(f"Failed to write TSIG key {key.name}")
                return None

            logger.info(f"Created TSIG key {new_key.name} ({new_key.algorithm.value})")
            await self.ctx.reload_bind()
            return new_key.model_copy(update={"secret": mask_secret(secret)})

    async def delete_tsig_key(self, key_id: str) -> bool:
        async with self.ctx.lock:
            try:
                changed = self.ctx.tsig_store.update(lambda keys: [k for k in keys if k.id != key_id])
                if not changed:
                    return False
                self.writer.write_tsig_keys(self.ctx.tsig_store.load())
            except OSError:
                logger.exception(f"Failed to delete TSIG key {key_id}")
                return False

            await self.ctx.reload_bind()
            return True
