import sys
import time
from enum import Enum
from dataclasses import dataclass
from utils.probability import Precision

class Action(Enum):
	"""Player actions, valued by the letter used in script notation"""
	BALL = 'L'
	BAIT = 'T'
	ROCK = 'R'

class Reaction(Enum):
	FLEE = 'flee'
	WATCH = 'watch'
	CAUGHT = 'caught'

@dataclass(frozen=True)
class SpeciesParams:
	"""Per-species constants of the encounter"""
	name: str
	catch_rate: int
	flee_rate: int

@dataclass(frozen=True)
class CaptureRequest:
	"""A species, the scripted plan to evaluate against it, and the arithmetic to do it with"""
	species: SpeciesParams
	script: tuple[Action, ...]
	precision: Precision = Precision.FLOAT

	def __post_init__(self):
		for label, rate in [('catch rate', self.species.catch_rate), ('flee rate', self.species.flee_rate)]:
			if not 1 <= rate <= 255:
				raise ValueError(f"{self.species.name} {label} must be in [1, 255], got {rate}")
		if not self.script:
			raise ValueError("A script needs at least one action")
		balls = self.script.count(Action.BALL)
		if balls > SAFARI_BALLS:
			raise ValueError(f"Script throws {balls} balls but only {SAFARI_BALLS} are handed out")

# The Safari Zone hands out this many balls per visit
SAFARI_BALLS = 30

SPECIES = {
	'chansey': SpeciesParams(name='Chansey', catch_rate=30, flee_rate=125),
}

def parse_script(label: str) -> tuple[Action, ...]:
	"""'TTLLL' -> (BAIT, BAIT, BALL, BALL, BALL), whitespace is ignored"""
	letters = {a.value: a for a in Action}
	script = []
	for letter in label.upper():
		if letter.isspace():
			continue
		if letter not in letters:
			raise ValueError(f"Unknown action '{letter}' in script, use {'/'.join(letters)}")
		script.append(letters[letter])
	return tuple(script)

def script_label(script: tuple[Action, ...]) -> str:
	return ''.join(a.value for a in script)

# The plan evaluated by the original calculator for Chansey
DEFAULT_SCRIPT = parse_script(
	"TTLLL"
	"TLLTLLL"
	"TLLTLLL"
	"TLLTLLL"
	"TLLTLLL"
	"TLLTLLLLRL"
)

def time_str(seconds):
	mins = int(seconds // 60)
	secs = seconds % 60 # Apparently this preserves the decimal in python
	return f"{mins}m {secs:.1f}s" if mins else f"{secs:.1f}s"

def monitor_progress(get_progress, total, poll=1.0):
	start_time = time.time()
	while True:
		elapsed = time.time() - start_time

		progress = get_progress()
		percent_complete = min((progress / total) * 100, 100) if total else 100
		estimate = (elapsed * (100 - percent_complete) / percent_complete) if percent_complete > 0 else 0

		sys.stdout.write(f"\rProgress: {percent_complete:.2f}% - Elapsed: {time_str(elapsed)} - Remaining: {time_str(estimate)}     ")
		sys.stdout.flush()

		if progress >= total: return
		time.sleep(poll)
