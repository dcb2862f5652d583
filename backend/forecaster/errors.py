"""
Error taxonomy for the forecasting pipeline.

- ProviderError: a language-model or search call failed outright
- ParseError:    the provider answered with data that does not match the schema
- EmptyResult:   the call succeeded but produced nothing usable
- PipelineFatal: a required upstream artifact (market data, research plan)
                 could not be obtained; the run is aborted
"""


class ForecastError(Exception):
    """Base class for all pipeline errors."""


class ProviderError(ForecastError):
    pass


class ParseError(ForecastError):
    pass


class EmptyResult(ForecastError):
    pass


class PipelineFatal(ForecastError):
    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
