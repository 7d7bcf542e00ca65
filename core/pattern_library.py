"""
Pattern Library

Static table of regex-based vulnerability rules. Each rule maps an id to a
matcher over the raw contract source plus the human-readable text shown to
users. Matching is purely textual; false positives are expected.

Rules are compiled once when the library is built. A malformed pattern is a
configuration error and aborts the load, it is never reported per scan.
"""

import re
import threading
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml

from core.exceptions import PatternLibraryError
from core.models import PatternRule, Severity


# Value-moving external calls: call.value(..), call{value: ..}, .send(, .transfer(
_VALUE_CALL = (
    r'(?:\bcall\s*\.value\s*\([^)]*\)'
    r'|\bcall\s*\{[^}]*\bvalue\s*:[^}]*\}'
    r'|\.send\s*\('
    r'|\.transfer\s*\()'
)

# Write to a mapping/array slot or a balance variable: balances[x] = 0, balance -= amount
_STATE_WRITE = (
    r'(?:\b\w+(?:\s*\[[^\]]*\])+\s*[-+]?=(?!=)'
    r'|\b\w*[Bb]alance\w*\s*[-+]?=(?!=))'
)

# Modifier list between the parameter list and the body must declare visibility
_PUBLIC_OR_EXTERNAL = r'(?=[^{;]*\b(?:public|external)\b)'

_SENDER_CHECK = (
    r'(?:msg\.sender\s*==|==\s*msg\.sender'
    r'|_msgSender\(\)\s*==|==\s*_msgSender\(\)'
    r'|\bhasRole\s*\(|\b_checkOwner\s*\(|\b_checkRole\s*\(|\bonlyOwner\b)'
)

_FLAG_NAMES = {
    'IGNORECASE': re.IGNORECASE,
    'MULTILINE': re.MULTILINE,
    'DOTALL': re.DOTALL,
}


DEFAULT_RULES: List[Dict[str, Any]] = [
    {
        'id': 'Reentrancy',
        'severity': 'high',
        'pattern': _VALUE_CALL + r'[\s\S]{0,600}?' + _STATE_WRITE,
        'description': 'An external call that transfers value is followed by a state update, '
                       'so a malicious contract can re-enter before the state is written.',
        'impact': 'Total loss of contract funds, manipulation of contract state, '
                  'unauthorized execution of operations.',
        'recommendation': 'Apply the checks-effects-interactions pattern, use OpenZeppelin '
                          'ReentrancyGuard, or make every external call after all state updates.',
        'technical_details': 'The contract calls out before updating its own bookkeeping. The callee '
                             'can call the same function again while the old state is still visible.',
        'code_example': (
            "// Vulnerable\n"
            "function withdraw() {\n"
            "    uint amount = balances[msg.sender];\n"
            "    msg.sender.call.value(amount)(\"\");\n"
            "    balances[msg.sender] = 0;\n"
            "}\n\n"
            "// Safe\n"
            "function withdraw() {\n"
            "    uint amount = balances[msg.sender];\n"
            "    balances[msg.sender] = 0;\n"
            "    msg.sender.call.value(amount)(\"\");\n"
            "}"
        ),
        'references': [
            ('OpenZeppelin ReentrancyGuard',
             'https://docs.openzeppelin.com/contracts/4.x/api/security#ReentrancyGuard'),
            ('Consensys Smart Contract Best Practices',
             'https://consensys.github.io/smart-contract-best-practices/attacks/reentrancy/'),
        ],
    },
    {
        'id': 'Unchecked External Call',
        'severity': 'medium',
        # A statement that starts with the call discards its return value
        'pattern': (
            r'(?:^|[;{}]|\belse\b)\s*(?!(?:require|assert|if|return|bool)\b)[\w.\[\]()]*?\.(?:call|send)\b'
            r'(?:\s*\.value\s*\([^)]*\)|\s*\.gas\s*\([^)]*\)|\s*\{[^}]*\})*\s*\('
        ),
        'flags': ['MULTILINE'],
        'description': 'The result of a low-level external call is not checked.',
        'impact': 'Loss of funds, silent failure of critical operations, unexpected contract behavior.',
        'recommendation': 'Always check the return value of external calls, wrap them in require(), '
                          'or use a wrapper such as OpenZeppelin Address.sendValue.',
        'technical_details': 'call and send return false instead of reverting. Execution continues as '
                             'if the call succeeded unless the result is checked.',
        'code_example': (
            "// Vulnerable\n"
            "function sendFunds(address payable recipient) {\n"
            "    recipient.send(amount);\n"
            "}\n\n"
            "// Safe\n"
            "function sendFunds(address payable recipient) {\n"
            "    require(recipient.send(amount), \"Transfer failed\");\n"
            "}"
        ),
        'references': [
            ('Solidity Documentation - External Calls',
             'https://docs.soliditylang.org/en/v0.8.0/security-considerations.html#external-calls'),
        ],
    },
    {
        'id': 'Integer Overflow/Underflow',
        'severity': 'medium',
        'pattern': r'\b\w+\s*(?:\+\+|--|[-+*]=)|[\w\])]\s+[-+*]\s+[\w(]',
        'suppressed_by': (
            r'\bSafeMath\b'
            r'|\bpragma\s+solidity\s*[\^>=~]*\s*0\.(?:8|9|\d{2,})\.'
            r'|\bpragma\s+solidity\s*[\^>=~]*\s*[1-9]\d*\.\d'
        ),
        'description': 'Arithmetic without SafeMath or a Solidity 0.8+ compiler may overflow or underflow.',
        'impact': 'Manipulation of numeric values, unexpected results in calculations, financial exploits.',
        'recommendation': 'Use OpenZeppelin SafeMath or compile with Solidity 0.8.0 or later, '
                          'and check bounds before arithmetic.',
        'technical_details': 'Before 0.8.0 the compiler did not check arithmetic, so values silently '
                             'wrapped around on overflow or underflow.',
        'code_example': (
            "// Vulnerable (Solidity < 0.8.0)\n"
            "uint8 a = 255;\n"
            "uint8 b = 1;\n"
            "uint8 c = a + b; // c is 0\n\n"
            "// Safe (Solidity >= 0.8.0)\n"
            "uint8 a = 255;\n"
            "uint8 b = 1;\n"
            "uint8 c = a + b; // reverts"
        ),
        'references': [
            ('OpenZeppelin SafeMath', 'https://docs.openzeppelin.com/contracts/4.x/api/utils#SafeMath'),
        ],
    },
    {
        'id': 'Access Control',
        'severity': 'high',
        'pattern': (
            r'\bfunction\s+(?:withdraw|transfer|mint|burn|pause|unpause|upgrade)\w*\s*\([^)]*\)'
            + _PUBLIC_OR_EXTERNAL
            + r'(?![^{;]*\b(?:only[A-Z_]\w*|auth|requiresAuth)\b)'
            r'[^{;]*\{'
            r'(?![^}]{0,300}?' + _SENDER_CHECK + r')'
        ),
        'description': 'Critical functions are callable without adequate access control.',
        'impact': 'Unauthorized execution of critical functions, manipulation of contract state, theft of funds.',
        'recommendation': 'Restrict critical functions with modifiers, OpenZeppelin AccessControl, '
                          'or ownership checks.',
        'technical_details': 'Without an ownership or role check any account can call functions that '
                             'should be restricted to administrators.',
        'code_example': (
            "// Vulnerable\n"
            "function withdraw() public {\n"
            "    msg.sender.transfer(balance);\n"
            "}\n\n"
            "// Safe\n"
            "modifier onlyOwner() {\n"
            "    require(msg.sender == owner, \"Not owner\");\n"
            "    _;\n"
            "}\n\n"
            "function withdraw() public onlyOwner {\n"
            "    msg.sender.transfer(balance);\n"
            "}"
        ),
        'references': [
            ('OpenZeppelin AccessControl', 'https://docs.openzeppelin.com/contracts/4.x/api/access'),
        ],
    },
    {
        'id': 'Front-Running',
        'severity': 'medium',
        'pattern': r'\bblock\.timestamp\b|\btx\.gasprice\b|\bnow\b(?=\s*[-+<>=;)])',
        'suppressed_by': r'\bfunction\s+\w*[Rr]eveal\w*\s*\(',
        'description': 'Transaction ordering or timing data is used without a commit-reveal scheme.',
        'impact': 'Price manipulation, unauthorized execution of operations, lost arbitrage opportunities.',
        'recommendation': 'Use a commit-reveal scheme, external reference prices, or delays on critical operations.',
        'technical_details': 'An attacker watching the mempool can submit a similar transaction with a '
                             'higher gas price so it is mined first.',
        'code_example': (
            "// Vulnerable\n"
            "function buyTokens() {\n"
            "    uint price = calculatePrice();\n"
            "    require(msg.value >= price);\n"
            "    transferTokens(msg.sender);\n"
            "}\n\n"
            "// Safe (commit-reveal)\n"
            "mapping(bytes32 => uint) public commitments;\n\n"
            "function commit(bytes32 hash) {\n"
            "    commitments[hash] = block.timestamp;\n"
            "}\n\n"
            "function reveal(uint amount, bytes32 secret) {\n"
            "    bytes32 hash = keccak256(abi.encodePacked(amount, secret));\n"
            "    require(commitments[hash] > 0);\n"
            "}"
        ),
        'references': [
            ('Consensys Front-Running Attacks',
             'https://consensys.github.io/smart-contract-best-practices/attacks/frontrunning/'),
        ],
    },
    {
        'id': 'Timestamp Dependence',
        'severity': 'medium',
        'pattern': (
            r'\b(?:block\.timestamp|now)\s*(?:[<>]=?|[=!]=)'
            r'|(?:[<>]=?|[=!]=)\s*(?:block\.timestamp|now)\b'
        ),
        'description': 'Contract logic compares against the block timestamp.',
        'impact': 'Manipulated outcomes, unauthorized execution of functions, unpredictable behavior.',
        'recommendation': 'Avoid block.timestamp for critical decisions, use block.number for delays '
                          'and tolerate a drift of several seconds.',
        'technical_details': 'Block producers can shift the timestamp slightly, so it is not reliable '
                             'for exact comparisons.',
        'code_example': (
            "// Vulnerable\n"
            "require(block.timestamp == deadline);\n\n"
            "// Safer\n"
            "require(block.number >= deadlineBlock);"
        ),
        'references': [
            ('Solidity Documentation - Block and Transaction Properties',
             'https://docs.soliditylang.org/en/v0.8.0/units-and-global-variables.html'
             '#block-and-transaction-properties'),
        ],
    },
    {
        'id': 'Delegatecall Injection',
        'severity': 'high',
        'pattern': r'\bdelegatecall\s*[({]',
        'description': 'The contract uses delegatecall, which runs foreign code against its own storage.',
        'impact': 'Complete takeover of contract storage and funds if the target can be influenced.',
        'recommendation': 'Only delegatecall to trusted, immutable implementations and never to '
                          'user-supplied addresses.',
        'technical_details': 'delegatecall executes the callee in the caller\'s context, so the callee can '
                             'overwrite any storage slot including ownership variables.',
        'code_example': (
            "// Vulnerable\n"
            "function forward(address target, bytes calldata data) external {\n"
            "    target.delegatecall(data);\n"
            "}"
        ),
        'references': [
            ('SWC-112 Delegatecall to Untrusted Callee', 'https://swcregistry.io/docs/SWC-112'),
        ],
    },
    {
        'id': 'Denial of Service',
        'severity': 'medium',
        'pattern': (
            r'\bfor\s*\([^;)]*;[^;]*\.length\b'
            r'|\bwhile\s*\(\s*true\s*\)'
            r'|\bwhile\s*\([^)]*\.length\b'
        ),
        'description': 'Loops iterate over data that can grow without bound.',
        'impact': 'Functions can exceed the block gas limit and become permanently uncallable.',
        'recommendation': 'Bound loop iterations, paginate work, or use pull-over-push patterns.',
        'technical_details': 'Gas cost grows with the array length. Once it exceeds the block gas '
                             'limit every call reverts.',
        'code_example': (
            "// Vulnerable\n"
            "for (uint i = 0; i < investors.length; i++) {\n"
            "    investors[i].transfer(share);\n"
            "}"
        ),
        'references': [
            ('SWC-128 DoS With Block Gas Limit', 'https://swcregistry.io/docs/SWC-128'),
        ],
    },
    {
        'id': 'Weak Random Number Generation',
        'severity': 'high',
        'pattern': (
            r'\b(?:keccak256|sha3|sha256)\s*\([^;]*?'
            r'(?:\bblock\.(?:timestamp|difficulty|prevrandao|number|coinbase|gaslimit)\b'
            r'|\bblockhash\s*\(|\bnow\b)'
        ),
        'description': 'Randomness is derived from a hash of block data.',
        'impact': 'Miners and contracts in the same block can predict or influence the outcome.',
        'recommendation': 'Use a verifiable randomness source such as Chainlink VRF or a commit-reveal scheme.',
        'technical_details': 'Block attributes are public and partially controlled by block producers, '
                             'so hashing them does not produce unpredictable values.',
        'code_example': (
            "// Vulnerable\n"
            "function random() public view returns (uint) {\n"
            "    return uint(keccak256(abi.encodePacked(block.timestamp)));\n"
            "}"
        ),
        'references': [
            ('SWC-120 Weak Sources of Randomness', 'https://swcregistry.io/docs/SWC-120'),
        ],
    },
    {
        'id': 'Gas Limit Issues',
        'severity': 'low',
        # Single-argument transfer/send forwards a fixed 2300 gas stipend
        'pattern': r'\.(?:transfer|send)\s*\(\s*[^,()]*(?:\([^()]*\)[^,()]*)*\)',
        'description': 'Ether is sent with transfer or send, which forward a fixed 2300 gas stipend.',
        'impact': 'Payments to contract recipients can fail after gas cost changes.',
        'recommendation': 'Use call with a checked return value and a reentrancy guard instead of transfer or send.',
        'technical_details': 'The stipend is fixed, so recipients whose fallback needs more gas '
                             'always revert.',
        'code_example': (
            "// Fragile\n"
            "payable(msg.sender).transfer(amount);\n\n"
            "// Preferred\n"
            "(bool ok, ) = payable(msg.sender).call{value: amount}(\"\");\n"
            "require(ok, \"Transfer failed\");"
        ),
        'references': [
            ('Consensys: Stop Using transfer()',
             'https://consensys.io/diligence/blog/2019/09/stop-using-soliditys-transfer-now/'),
        ],
    },
    {
        'id': 'Signature Replay',
        'severity': 'high',
        'pattern': r'\becrecover\s*\(|\bECDSA\.(?:try)?[Rr]ecover\s*\(|\.(?:try)?[Rr]ecover\s*\(',
        'suppressed_by': (
            r'\bnonces?\s*\[[^\]]*\]\s*(?:\+\+|\+=|=(?!=))'
            r'|\+\+\s*nonces?\b'
            r'|\bnonces?\s*(?:\+\+|\+=)'
            r'|\b_useNonce\s*\('
            r'|\b(?:used|executed|consumed)\w*\s*\[[^\]]*\]\s*=\s*true\b'
        ),
        'description': 'Signatures are verified without a nonce that is consumed on use.',
        'impact': 'A valid signature can be replayed to repeat the authorized action.',
        'recommendation': 'Include a per-signer nonce and chain id in the signed message and mark it used.',
        'technical_details': 'Without a consumed nonce the same signed payload stays valid forever.',
        'code_example': (
            "// Vulnerable\n"
            "address signer = ecrecover(hash, v, r, s);\n"
            "require(signer == owner);\n\n"
            "// Safe\n"
            "require(signer == owner && nonce == nonces[signer]++);"
        ),
        'references': [
            ('SWC-121 Missing Protection against Signature Replay Attacks',
             'https://swcregistry.io/docs/SWC-121'),
        ],
    },
    {
        'id': 'Unprotected Initialization',
        'severity': 'high',
        'pattern': (
            r'\bfunction\s+(?:init|initialize)\w*\s*\([^)]*\)'
            + _PUBLIC_OR_EXTERNAL
            + r'(?![^{;]*\b(?:initializer|reinitializer|onlyInitializing|only[A-Z_]\w*)\b)'
            r'[^{;]*\{'
            r'(?![^}]{0,300}?\b(?:_?initialized|isInitialized|__isInitialized|_initializing)\b)'
        ),
        'description': 'A public initializer has no guard against being called again or by anyone.',
        'impact': 'An attacker can front-run or repeat initialization and take ownership.',
        'recommendation': 'Use the OpenZeppelin initializer modifier or an initialized flag, '
                          'and initialize in the deployment transaction.',
        'technical_details': 'Proxy-based contracts replace constructors with initializer functions, '
                             'which are ordinary public functions unless guarded.',
        'code_example': (
            "// Vulnerable\n"
            "function initialize(address _owner) external {\n"
            "    owner = _owner;\n"
            "}\n\n"
            "// Safe\n"
            "function initialize(address _owner) external initializer {\n"
            "    owner = _owner;\n"
            "}"
        ),
        'references': [
            ('OpenZeppelin Initializable',
             'https://docs.openzeppelin.com/contracts/4.x/api/proxy#Initializable'),
        ],
    },
]


def _compile(rule_id: str, pattern: Any, flag_names: Any) -> re.Pattern:
    if not isinstance(pattern, str) or not pattern:
        raise PatternLibraryError(detail=f"Rule {rule_id!r} has no pattern")

    flags = 0
    for name in flag_names or []:
        try:
            flags |= _FLAG_NAMES[str(name).upper()]
        except KeyError:
            raise PatternLibraryError(detail=f"Rule {rule_id!r} uses unknown regex flag {name!r}")

    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise PatternLibraryError(detail=f"Rule {rule_id!r} has a malformed pattern: {e}") from e


def build_rule(definition: Dict[str, Any]) -> PatternRule:
    """Compile one rule definition dict into a PatternRule."""
    rule_id = definition.get('id')
    if not rule_id or not isinstance(rule_id, str):
        raise PatternLibraryError(detail=f"Rule definition without an id: {definition!r}")

    try:
        severity = Severity.parse(definition.get('severity'))
    except ValueError as e:
        raise PatternLibraryError(detail=f"Rule {rule_id!r}: {e}") from e

    flags = definition.get('flags')
    suppressor = None
    if definition.get('suppressed_by'):
        suppressor = _compile(rule_id, definition['suppressed_by'], flags)

    references: List[Tuple[str, str]] = []
    for ref in definition.get('references') or []:
        if isinstance(ref, dict):
            references.append((str(ref.get('title', '')), str(ref.get('url', ''))))
        else:
            title, url = ref
            references.append((str(title), str(url)))

    return PatternRule(
        id=rule_id,
        severity=severity,
        matcher=_compile(rule_id, definition.get('pattern'), flags),
        description=definition.get('description', ''),
        impact=definition.get('impact', ''),
        recommendation=definition.get('recommendation', ''),
        suppressor=suppressor,
        technical_details=definition.get('technical_details', ''),
        code_example=definition.get('code_example', ''),
        references=tuple(references),
    )


class PatternLibrary:
    """Read-only, ordered collection of compiled PatternRules."""

    def __init__(self, rule_definitions: Optional[List[Dict[str, Any]]] = None):
        definitions = DEFAULT_RULES if rule_definitions is None else rule_definitions
        rules: Dict[str, PatternRule] = {}
        for definition in definitions:
            rule = build_rule(definition)
            if rule.id in rules:
                raise PatternLibraryError(detail=f"Duplicate rule id: {rule.id!r}")
            rules[rule.id] = rule
        self._rules: Tuple[PatternRule, ...] = tuple(rules.values())
        self._by_id = rules

    @classmethod
    def from_yaml(cls, path: Union[str, Path], include_defaults: bool = True) -> "PatternLibrary":
        """Build a library from a YAML list of rule definitions."""
        path = Path(path).expanduser()
        try:
            with open(path, 'r') as f:
                extra = yaml.safe_load(f) or []
        except (OSError, yaml.YAMLError) as e:
            raise PatternLibraryError(detail=f"Could not load rules file {path}: {e}") from e

        if isinstance(extra, dict):
            extra = extra.get('rules', [])
        if not isinstance(extra, list):
            raise PatternLibraryError(detail=f"Rules file {path} must contain a list of rules")

        definitions = (list(DEFAULT_RULES) if include_defaults else []) + extra
        return cls(definitions)

    def all_rules(self) -> Tuple[PatternRule, ...]:
        return self._rules

    def rule_ids(self) -> List[str]:
        return [rule.id for rule in self._rules]

    def get_rule(self, rule_id: str) -> Optional[PatternRule]:
        return self._by_id.get(rule_id)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[PatternRule]:
        return iter(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id


_library: Optional[PatternLibrary] = None
_library_lock = threading.Lock()


def get_pattern_library() -> PatternLibrary:
    """Process-wide default library, built on first use."""
    global _library
    if _library is None:
        with _library_lock:
            if _library is None:
                _library = PatternLibrary()
    return _library


def reset_pattern_library() -> None:
    global _library
    with _library_lock:
        _library = None
