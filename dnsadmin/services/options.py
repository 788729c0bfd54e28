"""
Options Service - global forwarders and security options
"""

import logging

from ..models.server import ForwarderConfig, GlobalSecurityConfig
from .context import DnsContext
from .renderer import BindConfigWriter
from .resolver import sanitize_acl_entries


logger = logging.getLogger(__name__)


class OptionsService:
    """Global options rendered into named.conf.options and named.conf.forwarders"""

    def __init__(self, ctx: DnsContext):
        self.ctx = ctx
        self.writer = BindConfigWriter(ctx)

    async def get_forwarder_config(self) -> ForwarderConfig:
        return self.ctx.forwarder_store.load()

    async def update_forwarder_config(self, config: ForwarderConfig) -> bool:
        config = config.model_copy(update={"forwarders": sanitize_acl_entries(config.forwarders)})

        async with self.ctx.lock:
            try:
                self.ctx.forwarder_store.save(config)
                self.writer.write_forwarders(config)
                self.writer.write_options(self.ctx.security_store.load())
            except OSError:
                logger.exception("Failed to write forwarders")
                return False

            logger.info(f"Global forwarders: {', '.join(config.forwarders) or 'none'}")
            await self.ctx.reload_bind()
            return True

    async def get_security_config(self) -> GlobalSecurityConfig:
        return self.ctx.security_store.load()

    async def update_security_config(self, config: GlobalSecurityConfig) -> bool:
        config = config.model_copy(update={
            "allow_recursion": sanitize_acl_entries(config.allow_recursion),
            "allow_query": sanitize_acl_entries(config.allow_query),
        })

        async with self.ctx.lock:
            try:
                self.ctx.security_store.save(config)
                self.writer.write_options(config)
            except OSError:
                logger.exception("Failed to write global options")
                return False

            await self.ctx.reload_bind()
            return True
