"""
Feed-forward regression network

Architecture (fixed):
    Linear(n_features -> 16) + ReLU
    Linear(16 -> 8) + ReLU
    Linear(8 -> 1), identity output
"""

import math
from typing import Optional

import torch
import torch.nn as nn


class FeedForwardRegressor(nn.Module):
    """
    Small multilayer perceptron for single-target tabular regression

    Args:
        n_features: input width (number of columns per row)
    """

    HIDDEN_UNITS = (16, 8)

    def __init__(self, n_features: int):
        super(FeedForwardRegressor, self).__init__()

        self.n_features = n_features
        hidden_1, hidden_2 = self.HIDDEN_UNITS

        self.network = nn.Sequential(
            nn.Linear(n_features, hidden_1),
            nn.ReLU(),
            nn.Linear(hidden_1, hidden_2),
            nn.ReLU(),
            nn.Linear(hidden_2, 1)
        )

    def reset_parameters(self, generator: Optional[torch.Generator] = None):
        """
        Re-initialize every linear layer from the given generator

        Uses the same U(-1/sqrt(fan_in), 1/sqrt(fan_in)) range as the
        default nn.Linear init, but draws from a private generator so a
        seeded call never touches the global RNG.

        Args:
            generator: CPU random generator (None uses the global RNG)
        """
        with torch.no_grad():
            for module in self.network:
                if isinstance(module, nn.Linear):
                    bound = 1.0 / math.sqrt(module.in_features)
                    module.weight.uniform_(-bound, bound, generator=generator)
                    module.bias.uniform_(-bound, bound, generator=generator)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Forward pass

        Args:
            x: (batch, n_features)

        Returns:
            (batch,) predictions
        """
        return self.network(x).squeeze(-1)
