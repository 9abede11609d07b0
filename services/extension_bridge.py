"""Message handling for the browser extension that executes autofill commands."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Protocol

from .pipeline import AutofillPipeline

logger = logging.getLogger(__name__)

EXECUTE_AUTOFILL = "EXECUTE_AUTOFILL"

CommandExecutor = Callable[[Dict[str, Any]], None]


class Notifier(Protocol):
    def notify(self, title: str, message: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that reports through the log instead of a desktop popup."""

    def notify(self, title: str, message: str) -> None:
        logger.warning("[Extension] %s: %s", title, message)


class ExtensionBridge:
    """Answer extension messages by driving the pipeline.

    ``executor`` receives the ``EXECUTE_AUTOFILL`` message for the page that
    asked; ``notifier`` surfaces failures to the user.
    """

    def __init__(
        self,
        pipeline: AutofillPipeline,
        executor: CommandExecutor,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._pipeline = pipeline
        self._executor = executor
        self._notifier = notifier or LoggingNotifier()
        self.dataset_config: Optional[Dict[str, Any]] = None

    def handle(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        action = (message or {}).get("action")
        if action == "REQUEST_AUTOFILL":
            return self.request_autofill(message.get("url", ""), message.get("dataset"))
        if action == "SCAN_PAGE":
            return self.scan_page(message.get("payload") or {})
        if action == "GET_DATASET":
            return {"dataset": self.dataset_config}
        logger.debug("[Extension] Ignoring message with action %r", action)
        return None

    def request_autofill(self, url: str, dataset: Any = None) -> Dict[str, Any]:
        logger.info("[Extension] Direct autofill requested for %s", url)
        try:
            if not url:
                raise ValueError("No URL provided for autofill")
            result = self._pipeline.direct_autofill(url, dataset)
            if not result.get("success"):
                raise RuntimeError(result.get("error") or "Autofill request failed")
            commands = result["commands"]
            self._executor({"action": EXECUTE_AUTOFILL, "commands": commands, "metadata": result["metadata"]})
        except Exception as exc:
            logger.exception("[Extension] Autofill error: %s", exc)
            self._notifier.notify("Autofill Failed", str(exc))
            return {"success": False, "error": str(exc)}

        logger.info("[Extension] Dispatched %d autofill commands", len(commands))
        return {"success": True, "fieldsCount": len(commands), "metadata": result["metadata"]}

    def scan_page(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Remember and configure the dataset, then autofill the page at ``payload['url']``."""

        dataset = payload.get("dataset")
        if isinstance(dataset, dict) and dataset:
            self.dataset_config = dataset
            self._pipeline.configure_dataset(dataset)
            logger.info("[Extension] Dataset configured from scan request")

        result = self.request_autofill(payload.get("url", ""), dataset)
        if not result["success"]:
            return {"status": "error", "message": result["error"]}
        return dict(result, status="success", message=f"Autofilled {result['fieldsCount']} fields")


__all__ = ["CommandExecutor", "ExtensionBridge", "LoggingNotifier", "Notifier"]
