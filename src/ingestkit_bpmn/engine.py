"""Extraction engine -- statistics plus the subtree capture state machine.

The engine consumes parse events one at a time.  Every event updates the
scan's ``WalkerState``; when a predicate is supplied, an Open event that
satisfies it while no capture is active starts a ``CaptureSession`` that
records exactly that element's subtree.  The session completes on the
Close event that returns the depth to where it started, at which point
the fragment is serialized and handed to the component sink.

Captures are non-reentrant: matching elements nested inside an active
capture are buffered as content and do not start a second session.

Per-component problems (truncated or malformed captures, sink write
failures) are recorded as recoverable errors and the scan continues.
Malformed documents and depth bombs abort the scan by raising.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterable

from ingestkit_bpmn.bindings import matchers_from_config
from ingestkit_bpmn.capture import (
    CaptureMismatch,
    CapturePredicate,
    CaptureSession,
    metadata_for,
)
from ingestkit_bpmn.config import BPMNProcessorConfig
from ingestkit_bpmn.errors import (
    BPMNIngestException,
    ErrorCode,
    IngestError,
    MalformedDocument,
)
from ingestkit_bpmn.models import (
    CloseEvent,
    ExtractedComponent,
    OpenEvent,
    ParseEvent,
    ScanResult,
    TextEvent,
)
from ingestkit_bpmn.stats import WalkerState

logger = logging.getLogger("ingestkit_bpmn")

ComponentSink = Callable[[ExtractedComponent], None]


class ExtractionEngine:
    """Single-pass, single-document scan over a parse event sequence.

    Parameters
    ----------
    config:
        Pipeline configuration.  Uses defaults when *None*.
    predicate:
        Capture selection predicate.  *None* runs in pure analysis mode.
    on_component:
        Sink receiving each completed component.  When *None* the engine
        keeps completed components and returns them from ``finish()``.
    source_path:
        Recorded on every component and on the report.
    """

    def __init__(
        self,
        config: BPMNProcessorConfig | None = None,
        predicate: CapturePredicate | None = None,
        on_component: ComponentSink | None = None,
        source_path: str = "",
    ) -> None:
        self._config = config or BPMNProcessorConfig()
        self._predicate = predicate
        self._on_component = on_component
        self._source_path = source_path

        self.state = WalkerState(
            matchers_from_config(self._config.binding_root, self._config.binding_scopes),
            match_local_names=self._config.match_local_names,
            scan_text_for_bindings=self._config.scan_text_for_bindings,
        )
        self.errors: list[IngestError] = []
        self.component_count = 0
        self.peak_buffered_events = 0
        self.peak_buffered_chars = 0

        self._session: CaptureSession | None = None
        self._components: list[ExtractedComponent] = []
        self._component_ids: Counter[str] = Counter()
        self._stopped = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def capturing(self) -> bool:
        return self._session is not None

    @property
    def stopped(self) -> bool:
        """True once the element limit was hit; further events are ignored."""
        return self._stopped

    def feed(self, event: ParseEvent) -> ExtractedComponent | None:
        """Consume one event; return the component it completed, if any."""
        if self._stopped:
            return None
        if isinstance(event, OpenEvent):
            self._on_open(event)
            return None
        if isinstance(event, TextEvent):
            self._on_text(event)
            return None
        return self._on_close(event)

    def scan(self, events: Iterable[ParseEvent]) -> ScanResult:
        """Feed every event of *events*, then ``finish()``.

        Exceptions raised by the event source (e.g. ``MalformedDocument``)
        propagate unchanged and no result is produced.
        """
        iterator = iter(events)
        try:
            for event in iterator:
                self.feed(event)
                if self._stopped:
                    break
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()
        return self.finish()

    def finish(self) -> ScanResult:
        """End the scan and snapshot the results.

        An active capture at this point is a truncated capture: its partial
        fragment is discarded and a recoverable error recorded.
        """
        if self._session is not None:
            session = self._session
            self._session = None
            self._record_error(
                ErrorCode.W_CAPTURE_TRUNCATED,
                f"Document ended while capturing {session.metadata.type} "
                f"'{session.metadata.id}'; partial fragment discarded",
                component_id=session.metadata.id,
            )

        report = self.state.snapshot(
            self._config.complexity,
            source_path=self._source_path,
            truncated=self._stopped,
            errors=self.errors,
        )
        return ScanResult(
            report=report,
            components=list(self._components),
            component_count=self.component_count,
            duplicate_ids={
                k: v for k, v in sorted(self._component_ids.items()) if v > 1
            },
            error_details=list(self.errors),
            peak_buffered_events=self.peak_buffered_events,
            peak_buffered_chars=self.peak_buffered_chars,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _on_open(self, event: OpenEvent) -> None:
        config = self._config
        depth_before = self.state.current_depth

        if self.state.element_count >= config.max_elements:
            self._stopped = True
            self._record_error(
                ErrorCode.W_ELEMENT_LIMIT,
                f"Element count limit {config.max_elements} reached; scan stopped",
            )
            return

        if depth_before + 1 > config.max_depth:
            raise BPMNIngestException(
                code=ErrorCode.E_SECURITY_DEPTH_BOMB.value,
                message=(
                    f"XML nesting depth {depth_before + 1} exceeds limit of "
                    f"{config.max_depth}"
                ),
                stage="scan",
                xpath=self.state.xpath(),
            )

        self.state.on_open(event.name, event.attributes)

        if self._session is None:
            if self._predicate is None or not self._predicate(
                event.name, event.attributes, depth_before
            ):
                return
            self._session = CaptureSession(
                depth_before,
                metadata_for(event, config.match_local_names),
                namespaces=self.state.namespaces_in_scope(),
            )
            logger.debug(
                "ingestkit_bpmn | capture_start=%s | id=%s | depth=%d",
                self._session.metadata.type,
                self._session.metadata.id,
                depth_before,
            )

        self._buffer(event)

    def _on_text(self, event: TextEvent) -> None:
        self.state.on_text(event.value)
        if self._session is not None and event.value.strip():
            self._buffer(event)

    def _on_close(self, event: CloseEvent) -> ExtractedComponent | None:
        if self.state.current_depth == 0:
            raise MalformedDocument(
                f"Close tag '{event.name}' without a matching open tag",
                xpath="/",
            )
        self.state.on_close()

        if self._session is None:
            return None
        self._buffer(event)
        if self._session is not None and self.state.current_depth == self._session.start_depth:
            return self._complete()
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _buffer(self, event: ParseEvent) -> None:
        session = self._session
        assert session is not None
        try:
            session.append(event)
        except CaptureMismatch as exc:
            self._session = None
            self._record_error(
                ErrorCode.W_CAPTURE_MALFORMED,
                f"Malformed subtree in {session.metadata.type} "
                f"'{session.metadata.id}': {exc}",
                component_id=session.metadata.id,
            )
            return

        if len(session.buffered_events) > self.peak_buffered_events:
            self.peak_buffered_events = len(session.buffered_events)
        if session.buffered_chars > self.peak_buffered_chars:
            self.peak_buffered_chars = session.buffered_chars

    def _complete(self) -> ExtractedComponent:
        session = self._session
        assert session is not None
        self._session = None

        component = ExtractedComponent(
            **session.metadata.model_dump(),
            serialized_xml=session.serialize(self._config.indent),
            source_path=self._source_path,
        )
        self.component_count += 1
        if component.id is not None:
            self._component_ids[component.id] += 1

        logger.debug(
            "ingestkit_bpmn | captured=%s | id=%s | events=%d",
            component.type,
            component.id,
            len(session.buffered_events),
        )

        if self._on_component is None:
            self._components.append(component)
        else:
            try:
                self._on_component(component)
            except OSError as exc:
                self._record_error(
                    ErrorCode.W_COMPONENT_WRITE_FAILED,
                    f"Failed to write {component.type} '{component.id}': {exc}",
                    component_id=component.id,
                )
        return component

    def _record_error(
        self,
        code: ErrorCode,
        message: str,
        component_id: str | None = None,
    ) -> None:
        logger.warning(
            "ingestkit_bpmn | file=%s | code=%s | detail=%s",
            self._source_path,
            code.value,
            message,
        )
        self.errors.append(
            IngestError(
                code=code.value,
                message=message,
                stage="capture" if code != ErrorCode.W_ELEMENT_LIMIT else "scan",
                recoverable=True,
                xpath=self.state.xpath(),
                component_id=component_id,
            )
        )
