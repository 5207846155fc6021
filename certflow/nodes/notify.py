"""Notify node: sends a message through a notification channel."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, Field

from ..context import ExecutionContext
from ..errors import CertflowError, ConfigurationInvalid
from .base import NodeProcessor


class NotifyNodeConfig(BaseModel):
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)
    channel: str = "webhook"
    channel_config: Dict[str, Any] = Field(default_factory=dict)


class NotifyNode(NodeProcessor):
    async def process(self, ctx: ExecutionContext) -> None:
        config = self.load_config(NotifyNodeConfig)
        try:
            notifier = self.deps.providers.notifier(
                config.channel, config=config.channel_config, log_sink=self.logger
            )
        except ConfigurationInvalid as e:
            self.logger.add_output("failed to create notifier", str(e))
            raise

        last_output = await self.get_last_output()
        try:
            await notifier.notify(ctx, config.subject, config.message)
        except CertflowError as e:
            self.logger.add_output("failed to send notification", str(e))
            raise

        try:
            await self.deps.outputs.save(self.build_output(ctx, last_output))
        except CertflowError as e:
            self.logger.add_output("failed to save notify record", str(e))
            raise
        self.logger.add_output("notification sent")
