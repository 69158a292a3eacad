from __future__ import annotations
from dataclasses import dataclass, replace
from utils.params import Action, Reaction, SpeciesParams
from utils.probability import Precision
from procs.tables import stay_flee_table, catch_miss_table, MAX_COUNTER, TABLE_SIZE

MIN_ESCAPE_FACTOR = 2
MIN_BAIT_CATCH_FACTOR = 3
MAX_ROCK_CATCH_FACTOR = 20
MAX_ROCK_FLEE_RATE = 20

def to_factor(rate: int) -> int:
	"""Catch and flee rates are scaled down to 'factors' with truncating integer math"""
	return rate * 100 // 1275

@dataclass(frozen=True)
class SafariState:
	"""
	The encounter's internal counters between two turns.

	States are never mutated, every transition returns a new instance so a state can be handed
	to any number of children (or processes) without copying.
	"""
	catch_factor: int
	escape_factor: int
	bait_counter: int = 0
	rock_counter: int = 0
	base_catch_factor: int = 0 # Restored once a rock wears off

	@classmethod
	def initial(cls, species: SpeciesParams) -> SafariState:
		catch_factor = to_factor(species.catch_rate)
		return cls(
			catch_factor=catch_factor,
			escape_factor=max(MIN_ESCAPE_FACTOR, to_factor(species.flee_rate)),
			base_catch_factor=catch_factor,
		)

	def __post_init__(self):
		if self.bait_counter and self.rock_counter:
			raise ValueError(f"Bait and rock counters can't both be running: {self}")
		if not 0 <= self.catch_factor < TABLE_SIZE:
			raise ValueError(f"Catch factor {self.catch_factor} is outside the catch table")
		if not (0 <= self.bait_counter <= MAX_COUNTER and 0 <= self.rock_counter <= MAX_COUNTER):
			raise ValueError(f"Throw counters must be in [0, {MAX_COUNTER}]: {self}")

	def flee_rate(self) -> int:
		"""Percent chance of fleeing this turn, as the game compares it against Random() % 100"""
		if self.rock_counter:
			rate = min(self.escape_factor * 2, MAX_ROCK_FLEE_RATE)
		elif self.bait_counter:
			rate = max(self.escape_factor // 4, 1)
		else:
			rate = self.escape_factor
		return rate * 5

	def stay_flee(self, precision: Precision):
		return stay_flee_table(precision)[self.flee_rate()]

	def catch_miss(self, precision: Precision):
		return catch_miss_table(precision)[self.catch_factor]

	def counter(self, action: Action) -> int:
		match action:
			case Action.BAIT:
				return self.bait_counter
			case Action.ROCK:
				return self.rock_counter
			case _:
				raise ValueError(f"{action} has no throw counter")

	def after_player_action(self, action: Action, value: int) -> SafariState:
		match action:
			case Action.BAIT:
				return replace(self,
					bait_counter=value,
					rock_counter=0,
					catch_factor=max(self.catch_factor >> 1, MIN_BAIT_CATCH_FACTOR),
				)
			case Action.ROCK:
				return replace(self,
					rock_counter=value,
					bait_counter=0,
					catch_factor=min(self.catch_factor << 1, MAX_ROCK_CATCH_FACTOR),
				)
			case Action.BALL:
				return self # Catch or miss is decided by the node, not the counters

	def after_reaction(self, reaction: Reaction) -> SafariState:
		if reaction != Reaction.WATCH:
			return self # Fleeing or being caught ends the encounter, nothing left to count
		if self.rock_counter:
			rock_counter = self.rock_counter - 1
			catch_factor = self.catch_factor if rock_counter else self.base_catch_factor
			return replace(self, rock_counter=rock_counter, catch_factor=catch_factor)
		if self.bait_counter:
			return replace(self, bait_counter=self.bait_counter - 1)
		return self
