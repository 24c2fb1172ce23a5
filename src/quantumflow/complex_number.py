"""
quantumflow/complex_number.py - Immutable complex value type

A small value type used at the API surface for amplitudes. Vector math runs
on torch complex tensors; ``Complex`` converts to and from Python ``complex``
so the two representations interoperate.
"""
from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Complex:
    """Complex number with rectangular storage."""
    real: float = 0.0
    imaginary: float = 0.0

    @classmethod
    def from_polar(cls, magnitude: float, phase: float) -> Complex:
        return cls(magnitude * math.cos(phase), magnitude * math.sin(phase))

    @classmethod
    def from_real(cls, value: float) -> Complex:
        return cls(value, 0.0)

    @classmethod
    def from_imaginary(cls, value: float) -> Complex:
        return cls(0.0, value)

    @classmethod
    def from_complex(cls, value: complex) -> Complex:
        return cls(float(value.real), float(value.imag))

    # -------------------------------------------------------------------------
    # Derived quantities
    # -------------------------------------------------------------------------

    @property
    def magnitude(self) -> float:
        return math.hypot(self.real, self.imaginary)

    @property
    def magnitude_squared(self) -> float:
        return self.real * self.real + self.imaginary * self.imaginary

    @property
    def phase(self) -> float:
        return math.atan2(self.imaginary, self.real)

    # -------------------------------------------------------------------------
    # Arithmetic (every operation returns a new value)
    # -------------------------------------------------------------------------

    def add(self, other: Complex) -> Complex:
        return Complex(self.real + other.real, self.imaginary + other.imaginary)

    def subtract(self, other: Complex) -> Complex:
        return Complex(self.real - other.real, self.imaginary - other.imaginary)

    def multiply(self, other: Complex) -> Complex:
        return Complex(
            self.real * other.real - self.imaginary * other.imaginary,
            self.real * other.imaginary + self.imaginary * other.real,
        )

    def scale(self, factor: float) -> Complex:
        return Complex(self.real * factor, self.imaginary * factor)

    def conjugate(self) -> Complex:
        return Complex(self.real, -self.imaginary)

    def normalize(self) -> Complex:
        """Unit-magnitude copy. Zero stays zero."""
        mag = self.magnitude
        if mag == 0:
            return Complex(0.0, 0.0)
        return Complex(self.real / mag, self.imaginary / mag)

    def equals(self, other: Complex, tolerance: float = 1e-10) -> bool:
        return (
            abs(self.real - other.real) < tolerance
            and abs(self.imaginary - other.imaginary) < tolerance
        )

    def __add__(self, other: Complex) -> Complex:
        return self.add(other)

    def __sub__(self, other: Complex) -> Complex:
        return self.subtract(other)

    def __mul__(self, other: Complex | float) -> Complex:
        if isinstance(other, Complex):
            return self.multiply(other)
        return self.scale(other)

    __rmul__ = __mul__

    def __abs__(self) -> float:
        return self.magnitude

    def __complex__(self) -> complex:
        return complex(self.real, self.imaginary)

    def __str__(self) -> str:
        sign = "+" if self.imaginary >= 0 else "-"
        return f"{self.real}{sign}{abs(self.imaginary)}i"


ZERO = Complex(0.0, 0.0)
