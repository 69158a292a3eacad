from decimal import Decimal, localcontext
from enum import Enum
from fractions import Fraction

# Either backend representation, see Precision
Probability = float | Fraction

class Precision(Enum):
	"""
	Numeric backend for probability arithmetic.

	FLOAT trades exactness for speed, EXACT keeps every probability as a Fraction so sums of
	disjoint branches never drift. Both support *, + and 1 - p, so the engine is backend agnostic.
	"""
	FLOAT = 'float'
	EXACT = 'exact'

	@property
	def one(self):
		return self.convert(Fraction(1))

	@property
	def zero(self):
		return self.convert(Fraction(0))

	def convert(self, p: Fraction):
		match self:
			case Precision.FLOAT:
				return float(p)
			case Precision.EXACT:
				return Fraction(p)

	def complement(self, p):
		return self.one - p

	def format(self, p, digits: int = 15) -> str:
		"""Decimal string for reports, exact values are expanded without going through a float"""
		if isinstance(p, Fraction):
			with localcontext() as context:
				context.prec = digits + 5
				value = Decimal(p.numerator) / Decimal(p.denominator)
			return f"{value:.{digits}f}"
		return f"{p:.{digits}f}"

def multiply(a: Probability, b: Probability) -> Probability:
	"""Both independent events occur"""
	return a * b

def add(a: Probability, b: Probability) -> Probability:
	"""Either of two disjoint events occurs"""
	return a + b

def tolerance(precision: Precision) -> float:
	return 0.0 if precision == Precision.EXACT else 1e-9
