import pytest

from tests.conftest import FakeCompletion, FakeHandler, FixedClassifier
from twinlink.core.exceptions import CollaboratorFailure, ErrorKind
from twinlink.llm.client import Completion
from twinlink.models.routing import AgentName, RoutingStatus
from twinlink.routing.agents import CompletionAgentHandler, build_dispatch_table, parse_agent_list
from twinlink.routing.classifier import KeywordAgentClassifier, LLMAgentClassifier
from twinlink.routing.router import RETRY_PROMPT, IntentRouter, strip_markup


class FailingHandler:
    async def handle(self, twin_id: str, message: str) -> str:
        raise CollaboratorFailure("agent backend down")


class ScriptedCompletion:
    def __init__(self, text: str):
        self.text = text
        self.calls = []

    async def complete(self, prompt, continuation_state=None, instructions=None):
        self.calls.append(instructions)
        return Completion(text=self.text, continuation_state="")


def test_strip_markup():
    assert strip_markup("<p>Saved &amp; done</p>") == "Saved & done"
    assert strip_markup("line one<br/>line two") == "line one line two"
    assert strip_markup(None) == ""


def test_agent_name_parses_aliases():
    assert AgentName.parse("shortMemory") is AgentName.MIS_MEMORIAS
    assert AgentName.parse("Mi Alimentación") is AgentName.MI_ALIMENTACION
    assert AgentName.parse("foodDietary") is AgentName.MI_ALIMENTACION
    assert AgentName.parse("weather") is None


@pytest.mark.asyncio
async def test_unbound_turn_binds_without_calling_handler(intent_router, handlers):
    result = await intent_router.route("twin-1", "I want to save a memory")

    assert result.success
    assert result.status == RoutingStatus.BOUND
    assert result.agent_name is AgentName.MIS_MEMORIAS
    assert result.turn_number == 1
    assert "Mis Memorias" in result.response_prompt
    assert handlers[AgentName.MIS_MEMORIAS].calls == []


@pytest.mark.asyncio
async def test_bound_turn_goes_to_handler(intent_router, handlers):
    first = await intent_router.route("twin-1", "I want to save a memory")

    second = await intent_router.route(
        "twin-1", "Today I went hiking", first.agent_name, first.turn_number
    )

    assert second.success
    assert second.status == RoutingStatus.BOUND
    assert second.agent_name is AgentName.MIS_MEMORIAS
    assert second.turn_number == 2
    assert second.response_prompt == "Saved & done"
    assert second.confidence == 1.0
    assert handlers[AgentName.MIS_MEMORIAS].calls == [("twin-1", "Today I went hiking")]


@pytest.mark.asyncio
@pytest.mark.parametrize("agent", list(AgentName))
async def test_naming_an_agent_binds_it(intent_router, handlers, agent):
    result = await intent_router.route("twin-1", f"I want the {agent.value} agent")

    assert result.success
    assert result.status == RoutingStatus.BOUND
    assert result.agent_name is agent
    assert result.confidence == 1.0
    assert result.turn_number == 1
    assert handlers[agent].calls == []


@pytest.mark.asyncio
async def test_named_agent_then_follow_up_turn(intent_router, handlers):
    first = await intent_router.route("twin-1", "I want the Mis-Memorias agent")
    second = await intent_router.route("twin-1", "my keys are in the drawer", first.agent_name, first.turn_number)

    assert first.agent_name is AgentName.MIS_MEMORIAS
    assert first.turn_number == 1
    assert second.turn_number == 2
    assert handlers[AgentName.MIS_MEMORIAS].calls == [("twin-1", "my keys are in the drawer")]


@pytest.mark.asyncio
async def test_user_text_reaches_handler_unstripped(intent_router, handlers):
    result = await intent_router.route("twin-1", "3 < 5 and 7 > 2", "Mis-Memorias", 1)

    assert result.response_prompt == "Saved & done"
    assert handlers[AgentName.MIS_MEMORIAS].calls == [("twin-1", "3 < 5 and 7 > 2")]


@pytest.mark.asyncio
async def test_bound_turn_accepts_alias_name(intent_router, handlers):
    result = await intent_router.route("twin-1", "pasta for lunch", "foodDietary", 4)

    assert result.agent_name is AgentName.MI_ALIMENTACION
    assert result.turn_number == 5
    assert len(handlers[AgentName.MI_ALIMENTACION].calls) == 1


@pytest.mark.asyncio
async def test_no_match_asks_for_clarification(intent_router):
    result = await intent_router.route("twin-1", "hello there")

    assert result.success
    assert result.status == RoutingStatus.UNBOUND
    assert result.agent_name is None
    assert result.turn_number == 1
    assert "Mis Memorias" in result.response_prompt
    assert result.state.agent_name is None


@pytest.mark.asyncio
async def test_unknown_classifier_verdict_stays_unbound(handlers):
    router = IntentRouter(FixedClassifier("Weather-Agent"), handlers)

    result = await router.route("twin-1", "will it rain?")

    assert result.success is False
    assert result.status == RoutingStatus.UNBOUND
    assert result.error == ErrorKind.UNKNOWN_AGENT
    assert result.response_prompt == router.clarification_prompt()


@pytest.mark.asyncio
async def test_unregistered_bound_agent_is_unknown():
    router = IntentRouter(KeywordAgentClassifier(), {AgentName.CONTACTOS: FakeHandler()})

    result = await router.route("twin-1", "anything", AgentName.MI_FAMILIA, 2)

    assert result.error == ErrorKind.UNKNOWN_AGENT
    assert result.status == RoutingStatus.UNBOUND
    assert result.turn_number == 3


@pytest.mark.asyncio
async def test_failing_handler_keeps_binding_and_offers_retry(handlers):
    handlers[AgentName.CONTACTOS] = FailingHandler()
    router = IntentRouter(KeywordAgentClassifier(), handlers)

    result = await router.route("twin-1", "call my friend", "Contactos", 1)

    assert result.success is False
    assert result.status == RoutingStatus.BOUND
    assert result.agent_name is AgentName.CONTACTOS
    assert result.error == ErrorKind.COLLABORATOR_FAILURE
    assert result.response_prompt == RETRY_PROMPT
    assert result.turn_number == 2


@pytest.mark.asyncio
async def test_invalid_input_is_reported(intent_router):
    empty = await intent_router.route("twin-1", "   ")
    negative = await intent_router.route("twin-1", "a memory", turn_number=-1)

    assert empty.error == ErrorKind.INVALID_ARGUMENT
    assert negative.error == ErrorKind.INVALID_ARGUMENT
    assert negative.turn_number == 1


@pytest.mark.asyncio
async def test_keyword_classifier_scores():
    classifier = KeywordAgentClassifier()

    food = await classifier.classify("What did I eat yesterday?")
    tie = await classifier.classify("photos of my family")
    limited = await KeywordAgentClassifier([AgentName.CONTACTOS]).classify("what did I eat?")

    assert food.agent_name == "Mi-Alimentacion"
    assert food.confidence == 0.5
    assert tie.agent_name is None
    assert limited.agent_name is None


def test_keyword_classifier_finds_named_agents():
    classifier = KeywordAgentClassifier()

    assert classifier.named_agents("quiero mi alimentación") == [AgentName.MI_ALIMENTACION]
    assert classifier.named_agents("Documentos-Semi-Estructurados please") == [
        AgentName.DOCUMENTOS_SEMI_ESTRUCTURADOS
    ]
    assert classifier.named_agents("Contactos or Mi-Familia") == [AgentName.CONTACTOS, AgentName.MI_FAMILIA]
    assert KeywordAgentClassifier([AgentName.CONTACTOS]).named_agents("Mis-Memorias") == []


def test_llm_classifier_parses_fenced_json():
    classifier = LLMAgentClassifier(FakeCompletion())

    parsed = classifier.parse_response(
        '```json\n{"agent_name": "Mis-Memorias", "confidence": 1.7, "reason": "memory", "message": "ok"}\n```'
    )
    null_agent = classifier.parse_response('{"agent_name": "null", "confidence": 0.2}')
    garbage = classifier.parse_response("I think memories?")

    assert parsed.agent_name == "Mis-Memorias"
    assert parsed.confidence == 1.0
    assert null_agent.agent_name is None
    assert garbage.agent_name is None


@pytest.mark.asyncio
async def test_llm_classifier_routes_through_router(handlers):
    completion = ScriptedCompletion('{"agent_name": "fooddiary", "confidence": 0.8}')
    router = IntentRouter(LLMAgentClassifier(completion), handlers)

    result = await router.route("twin-1", "log my breakfast")

    assert result.agent_name is AgentName.MI_ALIMENTACION
    assert result.confidence == 0.8
    assert "Mi-Alimentacion" in completion.calls[0]


@pytest.mark.asyncio
async def test_completion_agent_handler_uses_agent_prompt():
    completion = ScriptedCompletion("<p>Noted</p>")
    handler = CompletionAgentHandler(AgentName.MIS_MEMORIAS, completion)

    reply = await handler.handle("twin-1", "remember the keys")

    assert reply == "<p>Noted</p>"
    assert "Mis-Memorias" in completion.calls[0]


def test_dispatch_table_and_enabled_agents():
    agents = parse_agent_list("Mis-Memorias, fooddiary, Mis-Memorias")
    table = build_dispatch_table(FakeCompletion(), agents)

    assert agents == [AgentName.MIS_MEMORIAS, AgentName.MI_ALIMENTACION]
    assert set(table) == set(agents)
    assert len(build_dispatch_table(FakeCompletion())) == len(AgentName)
    assert parse_agent_list("") == []
    with pytest.raises(ValueError):
        parse_agent_list("Mis-Memorias,weather")
