import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .cancellation import CancellationToken
from .langs import CompileOptions, Lang, LangCompileData, LangRegistry
from .models import JudgeResult, Verdict
from .problem import Problem, SourceFile

logger = logging.getLogger(__name__)


@dataclass
class CompiledProgram:
    data: LangCompileData
    # None for files run as they are
    lang: Optional[Lang] = None

    def run_command(self, overrides=None) -> List[str]:
        if self.lang is None:
            return [self.data.output_path]
        return self.lang.get_run_command(self.data.output_path, overrides)


@dataclass
class CompileBundle:
    src: Optional[CompiledProgram] = None
    checker: Optional[CompiledProgram] = None
    interactor: Optional[CompiledProgram] = None
    generator: Optional[CompiledProgram] = None
    brute_force: Optional[CompiledProgram] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def compilation_message(self) -> str:
        return "\n\n".join(msg for msg in self.diagnostics if msg)


class Compiler:
    def __init__(self, registry: LangRegistry):
        self.registry = registry

    async def _optional_compile(
        self,
        file: SourceFile,
        token: CancellationToken,
        force: Optional[bool],
        bundle: CompileBundle,
    ) -> JudgeResult[CompiledProgram]:
        """Compile ``file`` when it is in a known language, else use it as-is."""
        lang = self.registry.get_lang(file.path, ignore_error=True)
        if lang is None:
            return JudgeResult.ok(CompiledProgram(LangCompileData(file.path)))
        result = await lang.compile(file, token, force, CompileOptions(diagnostics=bundle.diagnostics))
        if result.known:
            return JudgeResult(result.verdict, result.message)
        file.hash = result.data.hash
        return JudgeResult.ok(CompiledProgram(result.data, lang))

    async def compile_all(
        self,
        problem: Problem,
        force: Optional[bool],
        token: CancellationToken,
        with_bf_compare: bool = False,
        debug: bool = False,
    ) -> JudgeResult[CompileBundle]:
        """Compile every program a run of ``problem`` needs.

        Stops at the first failure; the partially filled bundle travels with
        the failure so its diagnostics stay available.
        """
        bundle = CompileBundle()
        src_lang = self.registry.get_lang(problem.src.path)
        if src_lang is None:
            return JudgeResult(
                Verdict.SYSTEM_ERROR,
                f"Cannot determine the programming language of the source file: {problem.src.path}.",
                bundle,
            )
        result = await src_lang.compile(problem.src, token, force, CompileOptions(
            can_use_wrapper=True,
            debug=debug,
            overrides=problem.compilation_settings,
            diagnostics=bundle.diagnostics,
        ))
        if result.known:
            return JudgeResult(result.verdict, result.message, bundle)
        problem.src.hash = result.data.hash
        bundle.src = CompiledProgram(result.data, src_lang)

        if problem.checker:
            checker_result = await self._optional_compile(problem.checker, token, force, bundle)
            if checker_result.known:
                return JudgeResult(checker_result.verdict, checker_result.message, bundle)
            bundle.checker = checker_result.data

        if problem.interactor:
            interactor_result = await self._optional_compile(problem.interactor, token, force, bundle)
            if interactor_result.known:
                return JudgeResult(interactor_result.verdict, interactor_result.message, bundle)
            bundle.interactor = interactor_result.data

        if with_bf_compare:
            bf = problem.bf_compare
            if bf is None or bf.generator is None or bf.brute_force is None:
                return JudgeResult(
                    Verdict.REJECTED,
                    "Both generator and brute force source files must be provided for brute force comparison.",
                    bundle,
                )
            generator_result = await self._optional_compile(bf.generator, token, force, bundle)
            if generator_result.known:
                return JudgeResult(generator_result.verdict, generator_result.message, bundle)
            brute_force_result = await self._optional_compile(bf.brute_force, token, force, bundle)
            if brute_force_result.known:
                return JudgeResult(brute_force_result.verdict, brute_force_result.message, bundle)
            bundle.generator = generator_result.data
            bundle.brute_force = brute_force_result.data

        logger.debug("Compilation of %s succeeded", problem.src.path)
        return JudgeResult.ok(bundle)
