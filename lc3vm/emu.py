"""
LC-3 Virtual Machine — Main Machine Class

Integrates:
  - Register file (cpu/regs.py)
  - 64K-word memory (mem/memory.py)
  - Instruction decoder (cpu/decoder.py)
  - 16-bit ALU helpers (cpu/alu.py)
  - TRAP service routines (traps.py)
  - Keyboard / display / MCR device registers (periph/devices.py)
  - Host console (periph/console.py)

Execution model, one instruction per step():
  1. Fetch the word at PC
  2. Increment PC (wrapping at xFFFF)
  3. Decode into an Instruction
  4. Dispatch to the opcode handler → registers, memory, flags, console
  5. Stop if the handler halted the machine

Termination reasons (run()):
  - HALT:     TRAP x25, or a program cleared MCR bit 15
  - ILLEGAL:  RTI, RES, or TRAP to an unassigned vector
  - BREAK:    PC reached a breakpoint
  - TIMEOUT:  max_instructions executed
"""

import logging
from enum import Enum
from typing import Optional, Set

from .config import PC_START
from .cpu.alu import add16, and16, not16
from .cpu.decoder import Instruction, Opcode, decode, format_instruction
from .cpu.regs import R7, Registers
from .errors import IllegalInstruction, MachineFault, MachineStopped
from .loader import ObjectImage, load_image
from .mem.memory import Memory
from .periph.console import Console, StdioConsole
from .periph.devices import DeviceRegisters
from .traps import TrapRoutines

log = logging.getLogger('lc3vm.emu')


class StopReason(Enum):
    HALT = 'HALT'
    ILLEGAL = 'ILLEGAL'
    BREAK = 'BREAK'
    TIMEOUT = 'TIMEOUT'


class LC3Machine:
    """LC-3 virtual machine.

    Usage:
        con = ScriptedConsole()
        vm = LC3Machine(console=con)
        vm.load_image('hello.obj')       # or vm.mem.load_words(words, 0x3000)
        reason = vm.run()
        print(con.output)                # "Hello, World!\\nHALT\\n"

    With devices=False the device page is plain memory (no KBSR/DDR/MCR
    side effects).
    """

    def __init__(self, console: Optional[Console] = None,
                 devices: bool = True):
        self.regs = Registers()
        self.mem = Memory()
        self.console = console if console is not None else StdioConsole()

        self.traps = TrapRoutines(self)
        self.devices = DeviceRegisters(self.console, on_halt=self.halt)
        if devices:
            self.devices.register(self.mem)

        self.running = True
        self.fault: Optional[MachineFault] = None
        self.instructions = 0

        # Address/word of the instruction currently executing (fault reports)
        self.last_pc = self.regs.PC
        self.last_word = 0

        self._breakpoints: Set[int] = set()
        self._trace = False
        self._trace_output = []

        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_image(self, source) -> ObjectImage:
        """Load an .obj image (path or bytes) at the origin it declares."""
        return load_image(self.mem, source)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason.HALT if it halted.

        Faults propagate as MachineFault after the machine is marked stopped.
        """
        if not self.running:
            raise MachineStopped("machine is not running")

        pc = self.regs.PC
        word = self.mem.read(pc)
        self.regs.advance()
        inst = decode(word)
        self.last_pc, self.last_word = pc, word

        if self._trace or log.isEnabledFor(logging.DEBUG):
            line = f"x{pc:04X}: {format_instruction(inst, pc):24s} {self.regs.display()}"
            if self._trace:
                self._trace_output.append(line)
            log.debug(line)

        try:
            self._dispatch[inst.opcode](inst)
        except MachineFault as e:
            self.running = False
            self.fault = e
            raise

        self.instructions += 1
        if not self.running:
            return StopReason.HALT
        return None

    def run(self, max_instructions: Optional[int] = None) -> StopReason:
        """Run until HALT, a fault, a breakpoint, or the instruction limit.

        The instruction at the current PC always executes, so calling run()
        again after a BREAK resumes past the breakpoint.
        """
        if not self.running:
            raise MachineStopped("machine is not running")

        executed = 0
        while max_instructions is None or executed < max_instructions:
            if executed and self.regs.PC in self._breakpoints:
                log.info(f"Breakpoint at x{self.regs.PC:04X}")
                return StopReason.BREAK
            try:
                reason = self.step()
            except MachineFault as e:
                log.error(f"Machine fault: {e}")
                return StopReason.ILLEGAL
            executed += 1
            if reason is not None:
                return reason

        return StopReason.TIMEOUT

    def halt(self):
        """Stop the clock. The current instruction still completes."""
        if self.running:
            log.info(f"Machine halted at x{self.last_pc:04X}")
        self.running = False

    # ══════════════════════════════════════════════
    # Instruction execution
    # ══════════════════════════════════════════════

    def _build_dispatch(self) -> dict:
        return {
            Opcode.BR: self._op_br,
            Opcode.ADD: self._op_add,
            Opcode.LD: self._op_ld,
            Opcode.ST: self._op_st,
            Opcode.JSR: self._op_jsr,
            Opcode.AND: self._op_and,
            Opcode.LDR: self._op_ldr,
            Opcode.STR: self._op_str,
            Opcode.RTI: self._op_illegal,
            Opcode.NOT: self._op_not,
            Opcode.LDI: self._op_ldi,
            Opcode.STI: self._op_sti,
            Opcode.JMP: self._op_jmp,
            Opcode.RES: self._op_illegal,
            Opcode.LEA: self._op_lea,
            Opcode.TRAP: self._op_trap,
        }

    def _pc_relative(self, inst: Instruction) -> int:
        return add16(self.regs.PC, inst.offset)

    # ── Operate ──

    def _op_add(self, inst: Instruction):
        src2 = inst.imm if inst.imm_flag else self.regs[inst.sr2]
        self.regs[inst.dr] = add16(self.regs[inst.sr1], src2)
        self.regs.update_flags(inst.dr)

    def _op_and(self, inst: Instruction):
        src2 = inst.imm if inst.imm_flag else self.regs[inst.sr2]
        self.regs[inst.dr] = and16(self.regs[inst.sr1], src2)
        self.regs.update_flags(inst.dr)

    def _op_not(self, inst: Instruction):
        self.regs[inst.dr] = not16(self.regs[inst.sr1])
        self.regs.update_flags(inst.dr)

    # ── Loads ──

    def _op_ld(self, inst: Instruction):
        self.regs[inst.dr] = self.mem.read(self._pc_relative(inst))
        self.regs.update_flags(inst.dr)

    def _op_ldi(self, inst: Instruction):
        pointer = self.mem.read(self._pc_relative(inst))
        self.regs[inst.dr] = self.mem.read(pointer)
        self.regs.update_flags(inst.dr)

    def _op_ldr(self, inst: Instruction):
        addr = add16(self.regs[inst.base], inst.offset)
        self.regs[inst.dr] = self.mem.read(addr)
        self.regs.update_flags(inst.dr)

    def _op_lea(self, inst: Instruction):
        self.regs[inst.dr] = self._pc_relative(inst)
        self.regs.update_flags(inst.dr)

    # ── Stores (flags untouched) ──

    def _op_st(self, inst: Instruction):
        self.mem.write(self._pc_relative(inst), self.regs[inst.sr])

    def _op_sti(self, inst: Instruction):
        pointer = self.mem.read(self._pc_relative(inst))
        self.mem.write(pointer, self.regs[inst.sr])

    def _op_str(self, inst: Instruction):
        addr = add16(self.regs[inst.base], inst.offset)
        self.mem.write(addr, self.regs[inst.sr])

    # ── Control ──

    def _op_br(self, inst: Instruction):
        if inst.cond & self.regs.COND:
            self.regs.PC = self._pc_relative(inst)

    def _op_jmp(self, inst: Instruction):
        self.regs.PC = self.regs[inst.base]

    def _op_jsr(self, inst: Instruction):
        # Target is computed first: JSRR R7 jumps to the old R7
        if inst.link:
            target = self._pc_relative(inst)
        else:
            target = self.regs[inst.base]
        self.regs[R7] = self.regs.PC
        self.regs.PC = target

    def _op_trap(self, inst: Instruction):
        self.regs[R7] = self.regs.PC
        self.traps.dispatch(inst.vector)

    def _op_illegal(self, inst: Instruction):
        raise IllegalInstruction(f"illegal opcode {inst.opcode.name}",
                                 pc=self.last_pc, word=inst.word)

    # ══════════════════════════════════════════════
    # Breakpoint API
    # ══════════════════════════════════════════════

    def add_breakpoint(self, addr: int):
        """run() stops before executing the instruction at addr."""
        self._breakpoints.add(addr & 0xFFFF)

    def remove_breakpoint(self, addr: int):
        self._breakpoints.discard(addr & 0xFFFF)

    def clear_breakpoints(self):
        self._breakpoints.clear()

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Record one line per executed instruction (see get_trace())."""
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()

    def reset(self, pc: int = PC_START):
        """Back to power-on register/device state. Memory is left as is."""
        self.regs.reset()
        self.regs.PC = pc & 0xFFFF
        self.devices.reset()
        self.running = True
        self.fault = None
        self.instructions = 0
        self.last_pc = self.regs.PC
        self.last_word = 0
        self._breakpoints.clear()
        self._trace_output.clear()
