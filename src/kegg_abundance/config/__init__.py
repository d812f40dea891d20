from .loader import load_config, load_config_with_overrides
from .schema import (
    AggregationConfig,
    AnnotationSchema,
    APIConfig,
    DataSourceVersions,
    MappingSchema,
    ModuleCatalogConfig,
    PipelineConfig,
    ReadDepthConfig,
)

__all__ = [
    "load_config",
    "load_config_with_overrides",
    "PipelineConfig",
    "DataSourceVersions",
    "APIConfig",
    "ModuleCatalogConfig",
    "ReadDepthConfig",
    "AnnotationSchema",
    "MappingSchema",
    "AggregationConfig",
]
