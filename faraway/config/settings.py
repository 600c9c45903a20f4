"""
Tunable parameters of the detection and scoring pipeline.
"""

# ---------------------------------------------------------------------------
# Model input
# ---------------------------------------------------------------------------
MODEL_INPUT_SIZE = 640           # Square side of the detector input buffer
PAD_VALUE = 127 / 255            # Letterbox fill, matches training-time padding
LETTERBOX = True                 # False = stretch resize (no aspect preservation)

# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------
IOU_THRESHOLD = 0.45             # Class-agnostic NMS IoU threshold
MAX_DETECTIONS = 50              # Boxes kept after NMS

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------
SCENE_SCORE_THRESHOLD = 0.2      # Card / temple detection on the full photo
ANALYSIS_THRESHOLD = 0.1         # Attribute detection on a single crop

# ---------------------------------------------------------------------------
# Scene model class ids
# ---------------------------------------------------------------------------
CLASS_CARD_ID = 0
CLASS_TEMPLE_ID = 1

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
SCENE_MODEL_NAME = "SCENE_MODEL"
SCENE_MODEL_PATH = "models/scene.torchscript"
CARD_MODEL_NAME = "CARD_MODEL"
CARD_MODEL_PATH = "models/card.torchscript"
TEMPLE_MODEL_NAME = "TEMPLE_MODEL"
TEMPLE_MODEL_PATH = "models/temple.torchscript"

DEVICE = "cpu"
