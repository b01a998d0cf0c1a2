"""Market screener service: candle fetching, snapshot cache and signal scanning."""
