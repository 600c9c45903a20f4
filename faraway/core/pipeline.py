"""
Table analysis pipeline.

Turns one photo of a player's table into a scored layout:
    1. Scene model: find the cards and temples.
    2. Crop them, cards ordered left to right.
    3. Card / temple models: detect the elements on each crop, one
       crop at a time, and reduce them to AttributeRecords.
    4. Score the resulting GameLayout.

Models are looked up in a ModelRegistry. A crop model that is not
loaded yields empty records; a missing scene model yields no layout.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace

import torch
from tqdm import tqdm

from ..config import settings as cfg
from .attributes import AttributeRecord, aggregate_attributes
from .calculator import ScoreCalculator, ScoreResult
from .detection import DetectionResult
from .exceptions import DecodeError
from .regions import CroppedRegion, extract_regions
from .registry import ModelRegistry, default_registry
from .taxonomy import CARD_TAXONOMY, TEMPLE_TAXONOMY, ClassTaxonomy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameLayout:
    """Cards in placement order and temples in detection order."""

    cards: tuple[AttributeRecord, ...] = ()
    temples: tuple[AttributeRecord, ...] = ()
    card_regions: tuple[CroppedRegion, ...] = field(default=(), compare=False)
    temple_regions: tuple[CroppedRegion, ...] = field(default=(), compare=False)

    def with_card(self, index: int, record: AttributeRecord) -> "GameLayout":
        """Returns a copy with one card record replaced (manual correction)."""
        cards = list(self.cards)
        cards[index] = record
        return replace(self, cards=tuple(cards))

    def with_temple(self, index: int, record: AttributeRecord) -> "GameLayout":
        temples = list(self.temples)
        temples[index] = record
        return replace(self, temples=tuple(temples))


class TableAnalyzer:
    """Runs the scene, crop and attribute models and scores the result."""

    def __init__(
        self,
        registry: ModelRegistry = default_registry,
        calculator: ScoreCalculator | None = None,
        scene_model: str = cfg.SCENE_MODEL_NAME,
        card_model: str = cfg.CARD_MODEL_NAME,
        temple_model: str = cfg.TEMPLE_MODEL_NAME,
        card_taxonomy: ClassTaxonomy = CARD_TAXONOMY,
        temple_taxonomy: ClassTaxonomy = TEMPLE_TAXONOMY,
        scene_threshold: float = cfg.SCENE_SCORE_THRESHOLD,
        analysis_threshold: float = cfg.ANALYSIS_THRESHOLD,
        verbose: bool = False,
    ):
        """
        Args:
            registry: Where the three models are looked up.
            calculator: Score engine. Defaults to the standard rules.
            scene_model: Registry name of the card/temple detector.
            card_model: Registry name of the card element detector.
            temple_model: Registry name of the temple element detector.
            card_taxonomy: Class table of the card model.
            temple_taxonomy: Class table of the temple model.
            scene_threshold: Confidence threshold on the full photo.
            analysis_threshold: Confidence threshold on each crop.
            verbose: Whether to show a progress bar over crops.
        """
        self.registry = registry
        self.calculator = calculator or ScoreCalculator()
        self.scene_model = scene_model
        self.card_model = card_model
        self.temple_model = temple_model
        self.card_taxonomy = card_taxonomy
        self.temple_taxonomy = temple_taxonomy
        self.scene_threshold = scene_threshold
        self.analysis_threshold = analysis_threshold
        self.verbose = verbose

    async def load_models(
        self,
        scene_path: str = cfg.SCENE_MODEL_PATH,
        card_path: str = cfg.CARD_MODEL_PATH,
        temple_path: str = cfg.TEMPLE_MODEL_PATH,
        input_size: int = cfg.MODEL_INPUT_SIZE,
    ):
        """Loads the three models concurrently. Fails if any load fails."""
        await asyncio.gather(
            self.registry.load(scene_path, self.scene_model, input_size),
            self.registry.load(card_path, self.card_model, input_size),
            self.registry.load(temple_path, self.temple_model, input_size),
        )

    async def _detect(self, image: torch.Tensor, threshold: float, model_name: str) -> DetectionResult | None:
        try:
            return await self.registry.detect(image, threshold, model_name)
        except DecodeError as e:
            logger.error("Model %s returned unusable output: %s", model_name, e)
            raise

    async def _analyze_crops(
        self,
        regions: list[CroppedRegion],
        model_name: str,
        taxonomy: ClassTaxonomy,
    ) -> list[AttributeRecord]:
        records = []

        iterator = regions
        if self.verbose:
            iterator = tqdm(regions, desc=f"Analysing {taxonomy.name}s")

        for region in iterator:
            result = await self._detect(region.image, self.analysis_threshold, model_name)
            records.append(aggregate_attributes(result, taxonomy, self.analysis_threshold))

        return records

    async def analyze(self, image: torch.Tensor) -> GameLayout | None:
        """
        Detects and classifies every card and temple of a photo.

        Args:
            image: (3, H, W) tensor with values in [0, 1].

        Returns
        -------
            layout: The classified layout, or None if the scene model
                is not loaded.

        Raises
        ------
            DecodeError: If one of the models returns malformed output.
        """
        scene = await self._detect(image, self.scene_threshold, self.scene_model)
        if scene is None:
            return None

        card_regions = extract_regions(
            image, scene, cfg.CLASS_CARD_ID, self.scene_threshold, sort_left_to_right=True
        )
        temple_regions = extract_regions(
            image, scene, cfg.CLASS_TEMPLE_ID, self.scene_threshold, sort_left_to_right=False
        )
        logger.info("Found %d cards and %d temples", len(card_regions), len(temple_regions))

        cards = await self._analyze_crops(card_regions, self.card_model, self.card_taxonomy)
        temples = await self._analyze_crops(temple_regions, self.temple_model, self.temple_taxonomy)

        return GameLayout(
            cards=tuple(cards),
            temples=tuple(temples),
            card_regions=tuple(card_regions),
            temple_regions=tuple(temple_regions),
        )

    def score(self, layout: GameLayout) -> ScoreResult:
        return self.calculator.calculate(layout.cards, layout.temples)

    async def analyze_and_score(self, image: torch.Tensor) -> tuple[GameLayout, ScoreResult] | None:
        layout = await self.analyze(image)
        if layout is None:
            return None
        return layout, self.score(layout)
