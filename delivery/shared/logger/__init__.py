from delivery.shared.logger.john_wick_logger import JohnWickLogger

__all__ = ["JohnWickLogger"]
