from dataclasses import dataclass, field
from typing import Optional
import yaml
from pathlib import Path

@dataclass
class ModelConfig:
    """Configuration for the embedding model"""
    model_name: str = "openai/clip-vit-base-patch32"
    tokenizer_name: Optional[str] = None  # Defaults to model_name
    use_gpu: bool = False

    @property
    def device(self) -> str:
        return 'cuda' if self.use_gpu else 'cpu'


@dataclass
class RetrievalConfig:
    """Configuration for ranking"""
    query: str = "a photo"
    similarity_threshold: float = 0.2
    top_k: int = 5
    batch_size: int = 32
    n_workers: int = 1  # >1 embeds images of a batch on a thread pool


@dataclass
class CacheConfig:
    """Configuration for the feature cache"""
    cache_file: Optional[str] = None
    save_cache: bool = False  # Only written when cache_file is also set


@dataclass
class SystemConfig:
    """System-wide configuration"""
    image_dir: Optional[str] = None
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"
    results_path: Optional[str] = None
    metrics_path: Optional[str] = None  # JSON dump of per-operation timings
    show_progress: bool = True

    model: ModelConfig = field(default_factory=ModelConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    def save(self, path: str = "config.yaml"):
        """Save configuration to YAML file"""
        config_dict = {
            'image_dir': self.image_dir,
            'log_level': self.log_level,
            'log_dir': self.log_dir,
            'results_path': self.results_path,
            'metrics_path': self.metrics_path,
            'show_progress': self.show_progress,
            'model': {
                'model_name': self.model.model_name,
                'tokenizer_name': self.model.tokenizer_name,
                'use_gpu': self.model.use_gpu
            },
            'retrieval': {
                'query': self.retrieval.query,
                'similarity_threshold': self.retrieval.similarity_threshold,
                'top_k': self.retrieval.top_k,
                'batch_size': self.retrieval.batch_size,
                'n_workers': self.retrieval.n_workers
            },
            'cache': {
                'cache_file': self.cache.cache_file,
                'save_cache': self.cache.save_cache
            }
        }

        with open(path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2)

    @classmethod
    def load(cls, path: str = "config.yaml") -> 'SystemConfig':
        """Load configuration from YAML file"""
        if not Path(path).exists():
            return cls()  # Return default config

        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        config = cls()

        # Load system settings
        config.image_dir = config_dict.get('image_dir', config.image_dir)
        config.log_level = config_dict.get('log_level', config.log_level)
        config.log_dir = config_dict.get('log_dir', config.log_dir)
        config.results_path = config_dict.get('results_path', config.results_path)
        config.metrics_path = config_dict.get('metrics_path', config.metrics_path)
        config.show_progress = config_dict.get('show_progress', config.show_progress)

        # Load model settings
        if 'model' in config_dict:
            m = config_dict['model'] or {}
            config.model = ModelConfig(
                model_name=m.get('model_name', config.model.model_name),
                tokenizer_name=m.get('tokenizer_name', config.model.tokenizer_name),
                use_gpu=m.get('use_gpu', config.model.use_gpu)
            )

        # Load retrieval settings
        if 'retrieval' in config_dict:
            r = config_dict['retrieval'] or {}
            config.retrieval = RetrievalConfig(
                query=r.get('query', config.retrieval.query),
                similarity_threshold=float(r.get('similarity_threshold',
                                                 config.retrieval.similarity_threshold)),
                top_k=int(r.get('top_k', config.retrieval.top_k)),
                batch_size=int(r.get('batch_size', config.retrieval.batch_size)),
                n_workers=int(r.get('n_workers', config.retrieval.n_workers))
            )

        # Load cache settings
        if 'cache' in config_dict:
            c = config_dict['cache'] or {}
            config.cache = CacheConfig(
                cache_file=c.get('cache_file', config.cache.cache_file),
                save_cache=c.get('save_cache', config.cache.save_cache)
            )

        return config
