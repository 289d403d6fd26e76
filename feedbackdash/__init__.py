"""
feedbackdash: university feedback analytics (aggregations + terminal reports).
"""
