from delivery.shared.annotations.logging import LoggerBinding

__all__ = ["LoggerBinding"]
