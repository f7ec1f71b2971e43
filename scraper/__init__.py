# Scraper package - Page discovery, interaction and preview generation
from .discovery import ElementDiscovery, get_page_elements
from .interactions import InteractionChain, InteractionError, InteractionTarget
from .change_detector import ChangeDetector, screenshots_identical
from .artifacts import ArtifactGenerator, RenderOptions, get_artifact_generator
from .crawl_service import CrawlService, InvalidTransitionError, get_crawl_service
from .proactive import ProactiveScraper, get_proactive_scraper

__all__ = [
    "ElementDiscovery",
    "get_page_elements",
    "InteractionChain",
    "InteractionError",
    "InteractionTarget",
    "ChangeDetector",
    "screenshots_identical",
    "ArtifactGenerator",
    "RenderOptions",
    "get_artifact_generator",
    "CrawlService",
    "InvalidTransitionError",
    "get_crawl_service",
    "ProactiveScraper",
    "get_proactive_scraper",
]
