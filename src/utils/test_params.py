import unittest
from fractions import Fraction
from utils.params import (
	Action, CaptureRequest, SpeciesParams, SPECIES, SAFARI_BALLS, DEFAULT_SCRIPT,
	parse_script, script_label, time_str,
)
from utils.probability import Precision, multiply, add, tolerance

class TestParams(unittest.TestCase):
	def test_parse_script(self):
		self.assertEqual(parse_script('TTLLL'), (Action.BAIT, Action.BAIT, Action.BALL, Action.BALL, Action.BALL))
		self.assertEqual(parse_script('tr l'), (Action.BAIT, Action.ROCK, Action.BALL))
		with self.assertRaises(ValueError):
			parse_script('TXL')

	def test_script_label(self):
		self.assertEqual(script_label(parse_script('TLLTRL')), 'TLLTRL')

	def test_default_script(self):
		self.assertEqual(len(DEFAULT_SCRIPT), 43)
		self.assertEqual(DEFAULT_SCRIPT.count(Action.BALL), SAFARI_BALLS)
		self.assertEqual(script_label(DEFAULT_SCRIPT[:5]), 'TTLLL')

	def test_validation(self):
		chansey = SPECIES['chansey']
		with self.assertRaises(ValueError):
			CaptureRequest(species=chansey, script=())
		with self.assertRaises(ValueError):
			CaptureRequest(species=chansey, script=(Action.BALL,) * (SAFARI_BALLS + 1))
		with self.assertRaises(ValueError):
			CaptureRequest(species=SpeciesParams(name='Broken', catch_rate=0, flee_rate=125), script=(Action.BALL,))
		with self.assertRaises(ValueError):
			CaptureRequest(species=SpeciesParams(name='Broken', catch_rate=30, flee_rate=256), script=(Action.BALL,))
		CaptureRequest(species=chansey, script=(Action.BAIT,) * 100 + (Action.BALL,) * SAFARI_BALLS)

	def test_time_str(self):
		self.assertEqual(time_str(75), '1m 15.0s')
		self.assertEqual(time_str(3), '3.0s')

class TestPrecision(unittest.TestCase):
	def test_constants(self):
		self.assertEqual(Precision.EXACT.one, Fraction(1))
		self.assertIsInstance(Precision.EXACT.zero, Fraction)
		self.assertEqual(Precision.FLOAT.one, 1.0)
		self.assertIsInstance(Precision.FLOAT.zero, float)

	def test_operations(self):
		for precision in Precision:
			half = precision.convert(Fraction(1, 2))
			quarter = multiply(half, half)
			self.assertAlmostEqual(quarter, 0.25, delta=tolerance(precision))
			self.assertAlmostEqual(add(quarter, precision.complement(quarter)), 1.0, delta=tolerance(precision))

	def test_exact_sums(self):
		tenth = Precision.EXACT.convert(Fraction(1, 10))
		self.assertEqual(sum([tenth] * 10), 1)

	def test_format(self):
		self.assertEqual(Precision.EXACT.format(Fraction(1, 3), 5), '0.33333')
		self.assertEqual(Precision.FLOAT.format(0.5, 3), '0.500')
		self.assertEqual(Precision.EXACT.format(Fraction(0)), '0.000000000000000')

if __name__ == '__main__':
	unittest.main()
