"""Chart exam grader: detects swing points, Fibonacci anchors and Fair Value Gaps
in OHLC data and scores traders' chart annotations against them."""

__version__ = "1.0.0"
