from math import isqrt
from functools import cache
from fractions import Fraction
import numpy
from utils.probability import Precision

# Every value the game's 16-bit random number generator can produce, each equally likely
RANDOM_DOMAIN = numpy.arange(1 << 16, dtype=numpy.uint32)
N = len(RANDOM_DOMAIN)

MAX_COUNTER = 6
TABLE_SIZE = 256

def isqrt16(value: int) -> int:
	"""The GBA's Sqrt truncates and hands back a u16"""
	return isqrt(value) & 0xFFFF

def flee_count(flee_rate: int) -> int:
	"""
	Count the random values that make the encounter flee at this flee rate.

	The game flees when Random() % 100 < flee_rate. 65536 is not a multiple of 100 so the
	residues 0-35 are hit 656 times and 36-99 only 655 times; counting over the whole
	domain keeps that skew instead of approximating it as flee_rate / 100.
	"""
	return int(numpy.count_nonzero(RANDOM_DOMAIN % 100 < flee_rate))

def stay_flee_row(flee_rate: int) -> tuple[Fraction, Fraction]:
	count = flee_count(flee_rate)
	return Fraction(N - count, N), Fraction(count, N)

def catch_odds(catch_factor: int) -> int:
	"""Safari ball odds before the shake checks, in the game's integer arithmetic"""
	ball_multiplier = 15
	catch_rate = catch_factor * 1275 // 100
	return catch_rate * ball_multiplier // 30

def catch_miss_row(catch_factor: int) -> tuple[Fraction, Fraction]:
	odds = catch_odds(catch_factor)
	if odds > 254:
		return Fraction(1), Fraction(0) # The ball can't fail
	if odds == 0:
		return Fraction(0), Fraction(1)

	odds = isqrt16(isqrt16(16711680 // odds))
	odds = 1048560 // odds

	# All four shake checks must pass
	shake = Fraction(odds, N)
	catch = shake ** 4
	return catch, 1 - catch

def throw_outcomes(counter: int) -> dict[int, Fraction]:
	"""
	Distribution of a bait or rock counter after a throw, given its value before the throw.

	The game adds Random() % 5 + 2 and caps the result at 6, where residue 0 is hit 13108
	times and residues 1-4 only 13107 times.
	"""
	realized = numpy.minimum(counter + RANDOM_DOMAIN % 5 + 2, MAX_COUNTER)
	counts = numpy.bincount(realized, minlength=MAX_COUNTER + 1)
	return {value: Fraction(int(count), N) for value, count in enumerate(counts) if count > 0}

STAY_FLEE: tuple[tuple[Fraction, Fraction], ...] = tuple(stay_flee_row(r) for r in range(TABLE_SIZE))
CATCH_MISS: tuple[tuple[Fraction, Fraction], ...] = tuple(catch_miss_row(f) for f in range(TABLE_SIZE))
# Counters of 4 and up always land on 6
THROW_OUTCOMES: tuple[dict[int, Fraction], ...] = tuple(throw_outcomes(c) for c in range(MAX_COUNTER + 1))

MOD5_EQ0 = Fraction(13108, N)
MOD5_EQ1234 = Fraction(13107, N)

def _convert(table, precision: Precision):
	return tuple((precision.convert(a), precision.convert(b)) for a, b in table)

# Lookups happen for every node so convert each table once per backend
@cache
def stay_flee_table(precision: Precision):
	return _convert(STAY_FLEE, precision)

@cache
def catch_miss_table(precision: Precision):
	return _convert(CATCH_MISS, precision)

@cache
def throw_table(precision: Precision):
	return tuple(
		tuple((value, precision.convert(p)) for value, p in outcomes.items())
		for outcomes in THROW_OUTCOMES
	)

def print_probability_table(step: int = 5):
	"""Markdown table of the reachable rows: flee rates are multiples of 5, catch factors stop at 20"""
	rows = []
	for index in range(0, 101, step):
		stay, flee = STAY_FLEE[index]
		catch, miss = CATCH_MISS[index // 5]
		rows.append([
			str(index),
			f"{float(stay):.4f}",
			f"{float(flee):.4f}",
			str(index // 5),
			f"{float(catch):.4f}",
			f"{float(miss):.4f}",
		])

	headers = ["Flee rate", "Stay", "Flee", "Catch factor", "Catch", "Miss"]
	widths = [max(len(headers[i]), *(len(row[i]) for row in rows)) for i in range(len(headers))]

	print("| " + " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers)) + " |")
	print("|" + "|".join("-" * (w + 2) for w in widths) + "|")
	for row in rows:
		print("| " + " | ".join(row[i].ljust(widths[i]) for i in range(len(headers))) + " |")
