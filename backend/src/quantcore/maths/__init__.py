"""Numerical building blocks: function algebra, bridge, quadrature, roots."""
