"""MiniML: Hindley-Milner type inference for a small ML-like language."""

version = '0.1.0'
