"""
Engine lifecycle
================

One handle per engine kind (barcode, text), both owned by a ScannerContext
that the application builds once at startup and passes to the scanners.

Lifecycle: UNINITIALIZED -> READY -> TERMINATED (-> READY again on init).
init() is idempotent and serialized by a lock so concurrent callers never
construct two engines.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from ..config import BarcodeEngineConfig, ScannerConfig, TextEngineConfig
from ..core.errors import CameraAccessError, EngineInitError
from .barcode_providers import BarcodeDecoder, ZXingBarcodeDecoder, probe_video_devices
from .ocr_providers import TextEngineFactory, TextRecognitionEngine

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    UNINITIALIZED = 'uninitialized'
    READY = 'ready'
    TERMINATED = 'terminated'


class TextEngineHandle:
    """
    Owner of the text recognition engine.

    Construction failures are fatal and raised as EngineInitError.
    """

    kind = 'text'

    def __init__(
        self,
        config: Optional[TextEngineConfig] = None,
        factory: Optional[Callable[[TextEngineConfig], TextRecognitionEngine]] = None,
    ):
        self.config = config or TextEngineConfig()
        self._factory = factory or (lambda cfg: TextEngineFactory.create(config=cfg))
        self._engine: Optional[TextRecognitionEngine] = None
        self._state = EngineState.UNINITIALIZED
        self._lock = threading.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    def init(self) -> None:
        """
        Construct and initialize the engine once.

        Raises:
            EngineInitError: If the engine cannot be constructed
        """
        with self._lock:
            if self._state == EngineState.READY:
                return
            try:
                engine = self._factory(self.config)
                engine.initialize()
            except EngineInitError:
                logger.error("Text engine initialization failed", exc_info=True)
                raise
            except Exception as e:
                logger.error("Text engine initialization failed", exc_info=True)
                raise EngineInitError(str(e), engine=self.config.engine) from e
            self._engine = engine
            self._state = EngineState.READY
            logger.info(f"Text engine ready ({engine.name})")

    def get(self) -> TextRecognitionEngine:
        """Engine for one call; initializes lazily."""
        if self._state != EngineState.READY:
            self.init()
        return self._engine

    def terminate(self) -> None:
        """Release the engine; a later init() builds a new one."""
        with self._lock:
            if self._engine is not None:
                self._engine.terminate()
                self._engine = None
            self._state = EngineState.TERMINATED
            logger.info("Text engine terminated")


class BarcodeEngineHandle:
    """
    Owner of the barcode decoder.

    Camera enumeration failures during init are logged and the handle still
    becomes ready with has_camera=False.
    """

    kind = 'barcode'

    def __init__(
        self,
        config: Optional[BarcodeEngineConfig] = None,
        factory: Optional[Callable[[BarcodeEngineConfig], BarcodeDecoder]] = None,
        device_probe: Optional[Callable[[], List[int]]] = None,
    ):
        self.config = config or BarcodeEngineConfig()
        self._factory = factory or ZXingBarcodeDecoder
        self._device_probe = device_probe or (lambda: probe_video_devices(self.config.camera_probe_limit))
        self._decoder: Optional[BarcodeDecoder] = None
        self._state = EngineState.UNINITIALIZED
        self._has_camera = False
        self._lock = threading.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def has_camera(self) -> bool:
        return self._has_camera

    def init(self) -> None:
        with self._lock:
            if self._state == EngineState.READY:
                return
            if self._decoder is None:
                self._decoder = self._construct()
            self._has_camera = self._probe_cameras()
            self._state = EngineState.READY
            logger.info(f"Barcode decoder ready ({self._decoder.name}, camera={'yes' if self._has_camera else 'no'})")

    def _construct(self) -> BarcodeDecoder:
        try:
            return self._factory(self.config)
        except EngineInitError:
            raise
        except Exception as e:
            raise EngineInitError(str(e), engine='barcode') from e

    def _probe_cameras(self) -> bool:
        if not self.config.probe_cameras:
            return True
        try:
            devices = self._device_probe()
        except CameraAccessError as e:
            logger.warning(f"{e.message} - continuing without camera")
            return False
        except Exception as e:
            logger.warning(f"Camera enumeration failed ({e}) - continuing without camera")
            return False
        if not devices:
            logger.warning("No camera devices found - continuing in fallback mode")
            return False
        return True

    def get(self) -> BarcodeDecoder:
        if self._state != EngineState.READY:
            self.init()
        return self._decoder

    def reset(self) -> None:
        """
        Drop and recreate the decoder with the same configuration.

        The next get() re-runs camera enumeration.
        """
        with self._lock:
            self._decoder = self._construct()
            self._has_camera = False
            self._state = EngineState.UNINITIALIZED
            logger.info("Barcode decoder reset")

    def terminate(self) -> None:
        with self._lock:
            self._decoder = None
            self._has_camera = False
            self._state = EngineState.TERMINATED
            logger.info("Barcode decoder terminated")


class ScannerContext:
    """
    Long-lived owner of both recognition engines.

    Example:
        with ScannerContext(config) as context:
            orchestrator = FrameOrchestrator.from_context(context, config)
            ...
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        text_factory: Optional[Callable[[TextEngineConfig], TextRecognitionEngine]] = None,
        barcode_factory: Optional[Callable[[BarcodeEngineConfig], BarcodeDecoder]] = None,
        device_probe: Optional[Callable[[], List[int]]] = None,
    ):
        config = config or ScannerConfig()
        self.text = TextEngineHandle(config.text_engine, factory=text_factory)
        self.barcode = BarcodeEngineHandle(
            config.barcode_engine, factory=barcode_factory, device_probe=device_probe
        )

    def init(self) -> None:
        """
        Initialize both engines.

        Raises:
            EngineInitError: If either engine cannot be constructed
        """
        self.barcode.init()
        self.text.init()

    def terminate(self) -> None:
        self.text.terminate()
        self.barcode.terminate()

    def __enter__(self) -> 'ScannerContext':
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.terminate()
