"""Transaction cleaning and RFM (Recency-Frequency-Monetary) toolkit.

Raw retail line items are validated, annotated with revenue and folded into
one RFM record per customer, which is then summarised. See
:mod:`retail_rfm.pipeline` for the end-to-end entry point.
"""

__version__ = "0.1.0"
