"""Upload & review session: the single-document workflow the web page runs, for Python callers."""

import enum
import logging
from pathlib import Path
from typing import Callable, Optional

from analysis import AnalysisResult, generate_demo_analysis

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to analyze document. Please try again."


class Phase(enum.Enum):
    NO_FILE = "no_file"
    FILE_SELECTED = "file_selected"
    LOADING = "loading"
    RESULT = "result"


class ReviewSession:
    """Holds one uploaded document and its analysis.

    ``analyzer`` takes the document text and returns an ``AnalysisResult`` or raises;
    it is only used outside demo mode. ``demo_analyzer`` defaults to the local
    regex simulation.
    """

    def __init__(
        self,
        analyzer: Callable[[str], AnalysisResult],
        demo_analyzer: Optional[Callable[[str], AnalysisResult]] = None,
    ):
        self.analyzer = analyzer
        self.demo_analyzer = demo_analyzer or generate_demo_analysis
        self.demo_mode = False
        self._reset_state()

    def _reset_state(self):
        self.file_name: Optional[str] = None
        self.content = ""
        self.analysis: Optional[AnalysisResult] = None
        self.error = ""
        self.loading = False
        self.show_masked = False
        self.is_playing = False
        self.show_api_key_banner = False

    @property
    def phase(self) -> Phase:
        if self.file_name is None:
            return Phase.NO_FILE
        if self.loading:
            return Phase.LOADING
        if self.analysis is not None:
            return Phase.RESULT
        return Phase.FILE_SELECTED

    # ---------------------- TRANSITIONS ---------------------- #

    def select_file(self, path) -> str:
        path = Path(path)
        # Same decoding as the browser's FileReader.readAsText
        content = path.read_bytes().decode("utf-8", errors="replace")

        self.file_name = path.name
        self.content = content
        self.error = ""
        self.analysis = None
        logger.info("Loaded %s (%d chars)", self.file_name, len(self.content))
        return self.content

    def toggle_demo_mode(self) -> bool:
        self.demo_mode = not self.demo_mode
        self.analysis = None
        self.error = ""
        self.show_api_key_banner = False
        return self.demo_mode

    def analyze(self) -> Optional[AnalysisResult]:
        if not self.content:
            return None

        self.loading = True
        self.error = ""
        self.show_api_key_banner = False
        try:
            if self.demo_mode:
                self.analysis = self.demo_analyzer(self.content)
            else:
                self.analysis = self.analyzer(self.content)
        except Exception as e:
            message = str(e) or GENERIC_FAILURE
            self.error = message
            if "api key" in message.lower():
                self.show_api_key_banner = True
            logger.error("Analysis error: %s", message)
        finally:
            self.loading = False
        return self.analysis

    def toggle_view(self) -> bool:
        self.show_masked = not self.show_masked
        return self.show_masked

    @property
    def visible_text(self) -> str:
        if self.show_masked and self.analysis is not None:
            return self.analysis.masked_text
        return self.content

    # ---------------------- PLAYBACK ---------------------- #

    def start_playback(self, speaker) -> bool:
        """Read the summary aloud via ``speaker.speak(text, on_end)``."""
        if self.analysis is None or not self.analysis.simplified_text:
            return False
        self.is_playing = True
        speaker.speak(self.analysis.simplified_text, self._on_playback_end)
        return True

    def _on_playback_end(self):
        self.is_playing = False

    def stop_playback(self, speaker):
        speaker.cancel()
        self.is_playing = False

    def reset(self):
        """Analyze another document: drop file, content and analysis."""
        self._reset_state()
