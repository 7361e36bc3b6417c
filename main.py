import os
import sys
import logging
from config import SystemConfig
from core.errors import RetrievalError
from components.image_search import ImageSearchService
from utils.logging_config import setup_logging

def main() -> int:
    """Main application entry point"""
    # Load configuration
    config = SystemConfig.load(os.environ.get("RETRIEVAL_CONFIG", "config.yaml"))

    # Setup logging
    setup_logging(config.log_level, config.log_dir)
    logger = logging.getLogger(__name__)
    logger.info("Starting image retrieval")

    service = ImageSearchService(config)

    try:
        result = service.search()
    except (RetrievalError, OSError) as e:
        logger.error(f"Search failed: {e}")
        return 1

    print(service.format_report(result))

    if config.results_path:
        try:
            service.export_results(result, config.results_path)
        except OSError as e:
            logger.error(f"Could not write results to {config.results_path}: {e}")
            return 1

    if config.metrics_path:
        try:
            service.performance.save_metrics(config.metrics_path)
        except OSError as e:
            logger.error(f"Could not write metrics to {config.metrics_path}: {e}")
            return 1

    return 0

if __name__ == "__main__":
    sys.exit(main())
