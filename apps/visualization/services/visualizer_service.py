import logging
from typing import Dict, List, Optional, Tuple

from django.conf import settings

from apps.visualization.services.aggregator import DataAggregator
from apps.visualization.services.chart_recommender import ChartRecommender
from apps.visualization.services.chart_requirements import ChartRequirementValidator
from apps.visualization.services.field_selector import FieldSelector
from apps.visualization.services.geo import GeoDataDetector
from apps.visualization.services.loader import DatasetLoader
from apps.visualization.services.quality import DataQualityScorer
from apps.visualization.services.renderers import PlotlyChartGenerator
from apps.visualization.services.type_inference import ColumnTypeInferrer

from ..ml.utils import convert_numpy

logger = logging.getLogger(__name__)


class VisualizationService:
    def __init__(
        self,
        inferrer: Optional[ColumnTypeInferrer] = None,
        geo_detector: Optional[GeoDataDetector] = None,
        scorer: Optional[DataQualityScorer] = None,
    ):
        self.loader = DatasetLoader()
        self.inferrer = inferrer or ColumnTypeInferrer()
        self.geo_detector = geo_detector or GeoDataDetector()
        self.scorer = scorer or DataQualityScorer()
        self.validator = ChartRequirementValidator(self.geo_detector)
        self.field_selector = FieldSelector(self.geo_detector)
        self.recommender = ChartRecommender(
            self.field_selector, self.validator, self.geo_detector
        )
        self.aggregator = DataAggregator()

    @classmethod
    def from_settings(cls) -> "VisualizationService":
        config = getattr(settings, "CHARTWISE", {})
        return cls(
            inferrer=ColumnTypeInferrer(**config.get("TYPE_INFERENCE", {})),
            geo_detector=GeoDataDetector(**config.get("GEO", {})),
            scorer=DataQualityScorer(**config.get("QUALITY", {})),
        )

    def load_upload(
        self, source, file_name: Optional[str] = None, worksheet_name: Optional[str] = None
    ) -> Tuple[List[Dict], List[Dict]]:
        """
        Parse an uploaded file and infer its columns.
        Returns (rows, columns); raises DatasetLoadError for unreadable files
        """
        headers, rows = self.loader.load_rows(source, file_name, worksheet_name)
        columns = self.inferrer.infer_columns(rows, headers)
        return rows, columns

    def infer_columns(self, rows: List[Dict], headers: Optional[List[str]] = None) -> List[Dict]:
        return self.inferrer.infer_columns(rows, headers)

    def quality_report(self, rows: List[Dict], columns: List[Dict]) -> Dict:
        return convert_numpy(self.scorer.score(rows, columns))

    def detect_geo(self, rows: List[Dict], columns: List[Dict]) -> Dict:
        return self.geo_detector.detect(columns, rows)

    def validate_config(self, config: Dict, rows: List[Dict], columns: List[Dict]) -> Dict:
        return self.validator.validate(config, columns, rows)

    def recommend(self, rows: List[Dict], columns: List[Dict], top_k: int = 3) -> List[Dict]:
        return self.recommender.recommend(columns, rows, top_k=top_k)

    def render(self, config: Dict, rows: List[Dict], columns: List[Dict]) -> Dict:
        """
        Validate, aggregate and draw a ChartConfig.

        An invalid configuration is returned with ``chart: None``; the
        caller decides how to present the issues.
        """
        validation = self.validate_config(config, rows, columns)
        if not validation["is_valid"]:
            logger.debug("Chart config rejected: %s", validation["issues"])
            return {"validation": validation, "chart": None, "extra_info": {}}

        shaped, extra_info = self.aggregator.aggregate(rows, config)
        chart_config = dict(config)
        if "bins" in extra_info:
            chart_config["bins"] = extra_info["bins"]

        generator = PlotlyChartGenerator(config.get("palette") or "default")
        chart = generator.generate_chart(chart_config, shaped)

        return {
            "validation": validation,
            "chart": chart,
            "extra_info": convert_numpy(extra_info),
        }
