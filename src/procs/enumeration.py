from __future__ import annotations
import os
import multiprocessing
from multiprocessing import Manager
from multiprocessing.synchronize import Lock
from multiprocessing.managers import ValueProxy
from functools import reduce
from dataclasses import dataclass
from collections import defaultdict
from collections.abc import Callable

from utils.params import Action, Reaction, CaptureRequest, script_label, monitor_progress
from utils.probability import Precision, Probability, multiply, add
from procs.state import SafariState
from procs.tables import throw_table, MAX_COUNTER

# Past this turn the subtrees are too small to be worth shipping to another process
PARALLEL_SPLIT_LIMIT = 6
# About 100 MB of trace lines
MAX_TRACE_NODES = 1_000_000

@dataclass(frozen=True)
class Node:
	"""
	One joint outcome of a turn: what the player threw (and how it turned out) and how the
	encounter reacted. `probability` is the absolute probability of the whole path from the
	root, so a node never needs to look back at its ancestors.
	"""
	turn: int # Index in the script of the action that produced this node, -1 at the root
	state: SafariState # Counters once the turn is over
	probability: Probability
	action: Action | None = None
	value: int = 0 # Realized throw counter, or 1/0 for a ball that caught/missed
	reaction: Reaction | None = None
	action_probability: Probability = 1
	reaction_probability: Probability = 1
	before: SafariState | None = None # Counters before the action, kept for the trace

	@classmethod
	def root(cls, state: SafariState, precision: Precision) -> Node:
		one = precision.one
		return cls(turn=-1, state=state, probability=one, action_probability=one, reaction_probability=one)

	@property
	def is_terminal(self) -> bool:
		return self.reaction in (Reaction.FLEE, Reaction.CAUGHT)

	def child(self, action: Action, value: int, reaction: Reaction, action_probability: Probability,
			reaction_probability: Probability, state: SafariState) -> Node:
		return Node(
			turn=self.turn + 1,
			state=state,
			probability=multiply(self.probability, multiply(action_probability, reaction_probability)),
			action=action,
			value=value,
			reaction=reaction,
			action_probability=action_probability,
			reaction_probability=reaction_probability,
			before=self.state,
		)

def expand(node: Node, script: tuple[Action, ...], precision: Precision) -> list[Node]:
	"""Every outcome of the next scripted turn, or nothing once the encounter or the script is over"""
	if node.is_terminal:
		return []
	turn = node.turn + 1
	if turn >= len(script):
		return []

	action = script[turn]
	children: list[Node] = []

	def react(value: int, action_probability: Probability, thrown: SafariState):
		stay, flee = thrown.stay_flee(precision)
		children.append(node.child(action, value, Reaction.FLEE, action_probability, flee, thrown))
		children.append(node.child(action, value, Reaction.WATCH, action_probability, stay, thrown.after_reaction(Reaction.WATCH)))

	match action:
		case Action.BALL:
			# A caught encounter can't react, a missed one reacts as on any other turn
			catch, miss = node.state.catch_miss(precision)
			children.append(node.child(action, 1, Reaction.CAUGHT, catch, precision.one, node.state))
			react(0, miss, node.state)
		case Action.BAIT | Action.ROCK:
			counter = min(node.state.counter(action), MAX_COUNTER)
			for value, probability in throw_table(precision)[counter]:
				react(value, probability, node.state.after_player_action(action, value))

	return children

@dataclass
class Tally:
	"""Probability mass of every way an encounter can end, plus how many nodes were visited"""
	caught: Probability
	fled: Probability
	exhausted: Probability # Script ran out with the encounter still going
	nodes: int = 0

	@classmethod
	def empty(cls, precision: Precision, nodes: int = 0) -> Tally:
		zero = precision.zero
		return cls(zero, zero, zero, nodes)

	@classmethod
	def leaf(cls, node: Node, precision: Precision) -> Tally:
		tally = cls.empty(precision, nodes=1)
		match node.reaction:
			case Reaction.CAUGHT:
				tally.caught = node.probability
			case Reaction.FLEE:
				tally.fled = node.probability
			case _:
				tally.exhausted = node.probability
		return tally

	@property
	def total(self) -> Probability:
		return add(add(self.caught, self.fled), self.exhausted)

	def __add__(self, other: Tally) -> Tally:
		if not isinstance(other, Tally):
			return NotImplemented
		return Tally(
			caught=add(self.caught, other.caught),
			fled=add(self.fled, other.fled),
			exhausted=add(self.exhausted, other.exhausted),
			nodes=self.nodes + other.nodes,
		)

def describe(node: Node) -> str:
	"""One trace line, indented by turn"""
	if node.action is None:
		return "ROOT"

	if node.action == Action.BALL:
		label = "Ball catch" if node.reaction == Reaction.CAUGHT else "Ball miss"
	else:
		label = f"{node.action.name.title()} {node.before.counter(node.action)}=>{node.value}"

	line = f"{label} ({float(node.action_probability):.6f})"
	if node.reaction != Reaction.CAUGHT:
		line += f" {node.reaction.value.title()} ({float(node.reaction_probability):.6f})"
		if node.reaction == Reaction.WATCH:
			line += f" B{node.state.bait_counter} R{node.state.rock_counter} C{node.state.catch_factor}"
	line += f" (Abs: {float(node.probability):.6e})"
	return " " * (node.turn + 1) + line

def fold(node: Node, script: tuple[Action, ...], precision: Precision, trace: Callable[[str], None] | None = None) -> Tally:
	"""
	Walk every branch below `node` and sum where they end up.

	Children are generated, folded and dropped one frame at a time, so memory is bounded by the
	script length rather than by the number of paths. A leaf already carries its absolute
	probability, an inner node only adds up its children.
	"""
	if trace is not None:
		trace(describe(node))

	children = expand(node, script, precision)
	if not children:
		return Tally.leaf(node, precision)

	tally = Tally.empty(precision, nodes=1)
	for child in children:
		tally += fold(child, script, precision, trace)
	return tally

def enumerate_tree(job: CaptureRequest, trace: Callable[[str], None] | None = None) -> Tally:
	root = Node.root(SafariState.initial(job.species), job.precision)
	return fold(root, job.script, job.precision, trace)

def capture_probability(job: CaptureRequest, trace: Callable[[str], None] | None = None) -> Probability:
	return enumerate_tree(job, trace).caught

def count_nodes(job: CaptureRequest) -> int:
	"""Size of the tree enumerate_tree would walk, counted over merged states like propagate"""
	paths: dict[SafariState, int] = {SafariState.initial(job.species): 1}
	count = 1
	for turn in range(len(job.script)):
		next_paths: dict[SafariState, int] = defaultdict(int)
		for state, ways in paths.items():
			children = expand(Node(turn=turn - 1, state=state, probability=job.precision.one), job.script, job.precision)
			count += ways * len(children)
			for child in children:
				if child.reaction == Reaction.WATCH:
					next_paths[child.state] += ways
		paths = next_paths
	return count

def write_trace(job: CaptureRequest, path: str, max_nodes: int = MAX_TRACE_NODES) -> Tally:
	"""Fold the tree writing one line per node to `path`, refusing trees that would flood the disk"""
	nodes = count_nodes(job)
	if nodes > max_nodes:
		raise ValueError(f"{script_label(job.script)} has {nodes:,} tree nodes, more than {max_nodes:,} to trace")

	os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
	with open(path, 'w') as f:
		return enumerate_tree(job, trace=lambda line: f.write(line + '\n'))

def frontier(root: Node, script: tuple[Action, ...], precision: Precision, split_turn: int) -> tuple[Tally, list[Node]]:
	"""Expand every node before `split_turn`, returning the leaves met on the way and the nodes still to fold"""
	settled = Tally.empty(precision)
	pending = [root]
	remaining: list[Node] = []
	while pending:
		node = pending.pop()
		if node.turn >= split_turn:
			remaining.append(node)
			continue
		children = expand(node, script, precision)
		if children:
			settled += Tally.empty(precision, nodes=1)
			pending.extend(children)
		else:
			settled += Tally.leaf(node, precision)
	return settled, remaining

# multiprocessing doesn't handle captured variables or nested functions well, keep this at module level
def worker(node: Node, script: tuple[Action, ...], precision: Precision, shared_progress: ValueProxy, lock: Lock) -> Tally:
	tally = fold(node, script, precision)
	with lock:
		shared_progress.value += 1
	return tally

def enumerate_parallel(job: CaptureRequest, split_turn: int | None = None, processes: int | None = None, progress: bool = True) -> Tally:
	"""
	Same result as enumerate_tree, with the subtrees below `split_turn` folded across a process pool.

	The fold is a plain sum so the split point only changes the order of additions, which can move
	float results by rounding error and leaves exact results untouched.
	"""
	script, precision = job.script, job.precision
	if split_turn is None:
		split_turn = min(len(script) // 2, PARALLEL_SPLIT_LIMIT)

	root = Node.root(SafariState.initial(job.species), precision)
	settled, nodes = frontier(root, script, precision, split_turn)
	if not nodes:
		return settled

	with Manager() as manager:
		shared_progress = manager.Value('i', 0)
		lock = manager.Lock()

		with multiprocessing.Pool(processes or multiprocessing.cpu_count()) as pool:
			results = pool.starmap_async(worker, [(node, script, precision, shared_progress, lock) for node in nodes])
			if progress:
				monitor_progress(get_progress=lambda: shared_progress.value, total=len(nodes))
				print("\nEnumeration complete!")
			tallies = results.get()

	return reduce(lambda a, b: a + b, tallies, settled)

@dataclass
class CaptureDistribution:
	"""When the encounter ends: caught and fled mass per scripted turn"""
	caught_by_turn: list[Probability]
	fled_by_turn: list[Probability]
	exhausted: Probability
	states_by_turn: list[int] # Distinct live states entering each turn

	@property
	def caught(self) -> Probability:
		return reduce(add, self.caught_by_turn)

	@property
	def fled(self) -> Probability:
		return reduce(add, self.fled_by_turn)

def propagate(job: CaptureRequest) -> CaptureDistribution:
	"""
	Push reach probabilities through the script one turn at a time.

	Paths that end a turn with identical counters behave identically from then on, so they are
	merged before expanding the next turn. This visits a few hundred states where the tree walk
	visits every path, and gives the same totals.
	"""
	script, precision = job.script, job.precision
	reach: dict[SafariState, Probability] = {SafariState.initial(job.species): precision.one}

	caught_by_turn: list[Probability] = []
	fled_by_turn: list[Probability] = []
	states_by_turn: list[int] = []

	for turn in range(len(script)):
		caught = fled = precision.zero
		next_reach: dict[SafariState, Probability] = defaultdict(lambda: precision.zero)

		for state, probability in reach.items():
			for child in expand(Node(turn=turn - 1, state=state, probability=probability), script, precision):
				match child.reaction:
					case Reaction.CAUGHT:
						caught = add(caught, child.probability)
					case Reaction.FLEE:
						fled = add(fled, child.probability)
					case _:
						next_reach[child.state] = add(next_reach[child.state], child.probability)

		caught_by_turn.append(caught)
		fled_by_turn.append(fled)
		states_by_turn.append(len(reach))
		reach = next_reach

	return CaptureDistribution(
		caught_by_turn=caught_by_turn,
		fled_by_turn=fled_by_turn,
		exhausted=reduce(add, reach.values(), precision.zero),
		states_by_turn=states_by_turn,
	)
