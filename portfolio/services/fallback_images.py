# Shown when the backing store cannot be read, so a gallery page still renders.
from typing import Dict, List

from portfolio.services.image_schema import GalleryImage

_FALLBACK: Dict[str, List[dict]] = {
    "nature": [
        {"src": "/static/portfolio/nature/DSC05124.jpg", "width": 2048, "height": 1365},
        {"src": "/static/portfolio/nature/DSC05132.jpg", "width": 1365, "height": 2048},
        {"src": "/static/portfolio/nature/DSC05145.jpg", "width": 1365, "height": 2048},
        {"src": "/static/portfolio/nature/DSC07495.jpg", "width": 3376, "height": 6000},
        {"src": "/static/portfolio/nature/DSC07527.jpg", "width": 6000, "height": 3376},
        {"src": "/static/portfolio/nature/DSC07624.jpg", "width": 3376, "height": 6000},
    ],
    "wildlife": [
        {"src": "/static/portfolio/wildlife/BreakingTheSurface.jpg", "width": 2203, "height": 1469},
        {"src": "/static/portfolio/wildlife/CatchOfTheDay.jpg", "width": 1872, "height": 1248},
        {"src": "/static/portfolio/wildlife/CradleInTheGreen.jpg", "width": 2252, "height": 4000},
    ],
    "architecture": [
        {"src": "/static/portfolio/architecture/DSC09702.jpg", "width": 4672, "height": 7008},
        {"src": "/static/portfolio/architecture/DSC09471.jpg", "width": 7008, "height": 4672},
        {"src": "/static/portfolio/architecture/DSC09383.jpg", "width": 4672, "height": 7008},
        {"src": "/static/portfolio/architecture/DSC09473.jpg", "width": 7008, "height": 4672},
    ],
    "travel": [
        {"src": "/static/portfolio/travel/DSC05860.jpg", "width": 6000, "height": 3376},
        {"src": "/static/portfolio/travel/DotonboriCanal.jpg", "width": 1365, "height": 2048},
    ],
}


def fallback_images(category: str) -> List[GalleryImage]:
    return [GalleryImage(**item) for item in _FALLBACK.get(category, [])]
