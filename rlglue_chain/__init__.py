"""RLGlue-style agent/environment interface with a Markov-chain benchmark."""

__version__ = "0.1.0"
