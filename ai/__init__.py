"""
AI Predictor Module

Asks a language model for a fair price, edge and sizing on a prediction
market. Transport failures raise PredictionUnavailable; malformed answers
fall back to a neutral prediction.
"""
