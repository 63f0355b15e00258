# constants.py
import logging

logger = logging.getLogger(__name__)

# Engine budgets
MAX_INTERACTIONS = 50
MAX_SCREENSHOTS = 20
MAX_INTERACTIONS_PER_TYPE = 3
MAX_PROCESSING_TIME = 120000  # ms
MAX_DISCOVERY_ROUNDS = 5
FINAL_SCREENSHOT_THRESHOLD = 3

# Timings (ms)
INTERACTION_DELAY = 800
CHANGE_DETECTION_TIMEOUT = 2000
SCROLL_PAUSE_TIME = 500
TAB_POST_CLICK_WAIT = 1600
NETWORK_IDLE_TIMEOUT = 10000
DOM_CONTENT_TIMEOUT = 5000
IMAGE_LOAD_TIMEOUT = 5000
ANIMATION_CEILING = 3000
STABILITY_INTERVAL = 300
STABILITY_MAX_SAMPLES = 10
STABILITY_REQUIRED = 3
CLICK_TIMEOUT = 3000
REFRESH_TIMEOUT = 30000

# Readiness
QUALITY_THRESHOLD = 70
OVERLAY_COVERAGE_THRESHOLD = 0.35
LAZY_SCROLL_STEP = 0.8

# Region capture
REGION_MIN_HEIGHT = 420
REGION_MAX_HEIGHT = 1400
REGION_PADDING = 16

# Deduplication
DEDUPE_SIMILARITY_THRESHOLD = 99
DEDUPE_HASH_SIZE = 16

# Session
VIEWPORT = {"width": 1440, "height": 900}
NAVIGATION_TIMEOUT = 45000
PARALLEL_TASKS = 4
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
)
BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
    '--disable-background-timer-throttling',
    '--disable-backgrounding-occluded-windows',
    '--disable-renderer-backgrounding',
]

# Attribute attached to elements that have no stable identifier
MARKER_ATTRIBUTE = 'data-capture-id'
