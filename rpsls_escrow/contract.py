# rpsls_escrow/contract.py
# RPSLS escrow: Player 1 commits and stakes, Player 2 matches and plays,
# Player 1 reveals and the escrow pays out. Either side can claim the pot
# once the other has been idle for longer than the timeout window.
from pyteal import *

from .config import TIMEOUT_SECONDS

TEAL_VERSION = 8

# -------- Global keys --------
PLAYER1_KEY = Bytes("j1")          # bytes: creator addr
PLAYER2_KEY = Bytes("j2")          # bytes: opponent addr
STAKE_KEY = Bytes("stake")         # uint: microAlgos held, 0 once paid out
COMMIT_KEY = Bytes("c1_hash")      # bytes: sha256(itob(move) + secret)
MOVE2_KEY = Bytes("c2")            # uint: Player 2's move, 0 until played
LAST_ACTION_KEY = Bytes("last_action")  # uint: unix time of the last move
TIMEOUT_KEY = Bytes("timeout")     # uint: seconds

MOVE_MIN = Int(1)
MOVE_MAX = Int(5)


def _pay(receiver: Expr, amount: Expr) -> Expr:
    # fee is pooled from the outer call
    return Seq(
        InnerTxnBuilder.Begin(),
        InnerTxnBuilder.SetFields({
            TxnField.type_enum: TxnType.Payment,
            TxnField.receiver: receiver,
            TxnField.amount: amount,
            TxnField.fee: Int(0),
        }),
        InnerTxnBuilder.Submit(),
    )


def _paid_with_call() -> Expr:
    return Gtxn[Txn.group_index() - Int(1)].amount()


def _assert_grouped_payment() -> Expr:
    """The transaction just before this call pays the escrow, from the caller."""
    pay = Gtxn[Txn.group_index() - Int(1)]
    return Seq(
        Assert(Txn.group_index() > Int(0)),
        Assert(pay.type_enum() == TxnType.Payment),
        Assert(pay.sender() == Txn.sender()),
        Assert(pay.receiver() == Global.current_application_address()),
        Assert(pay.close_remainder_to() == Global.zero_address()),
        Assert(pay.rekey_to() == Global.zero_address()),
    )


def approval_program() -> Expr:
    stake = App.globalGet(STAKE_KEY)
    c2 = App.globalGet(MOVE2_KEY)
    is_p1 = Txn.sender() == App.globalGet(PLAYER1_KEY)
    is_p2 = Txn.sender() == App.globalGet(PLAYER2_KEY)
    timed_out = Global.latest_timestamp() > App.globalGet(LAST_ACTION_KEY) + App.globalGet(TIMEOUT_KEY)

    # create(c1_hash, j2): no method name, args are the constructor arguments
    on_create = Seq(
        Assert(Txn.application_args.length() == Int(2)),
        Assert(Len(Txn.application_args[0]) == Int(32)),
        Assert(Len(Txn.application_args[1]) == Int(32)),
        Assert(Txn.application_args[1] != Txn.sender()),
        App.globalPut(PLAYER1_KEY, Txn.sender()),
        App.globalPut(PLAYER2_KEY, Txn.application_args[1]),
        App.globalPut(COMMIT_KEY, Txn.application_args[0]),
        App.globalPut(STAKE_KEY, Int(0)),
        App.globalPut(MOVE2_KEY, Int(0)),
        App.globalPut(LAST_ACTION_KEY, Int(0)),
        App.globalPut(TIMEOUT_KEY, Int(TIMEOUT_SECONDS)),
        Approve(),
    )

    # ---- Methods ----

    # fund  [p1, once, grouped after the stake payment]
    do_fund = Seq(
        Assert(is_p1),
        Assert(App.globalGet(LAST_ACTION_KEY) == Int(0)),
        _assert_grouped_payment(),
        Assert(_paid_with_call() > Int(0)),
        App.globalPut(STAKE_KEY, _paid_with_call()),
        App.globalPut(LAST_ACTION_KEY, Global.latest_timestamp()),
        Approve(),
    )

    # play(move)  [p2, matching the stake]
    move2 = Btoi(Txn.application_args[1])
    do_play = Seq(
        Assert(is_p2),
        Assert(stake > Int(0)),
        Assert(c2 == Int(0)),
        Assert(Len(Txn.application_args[1]) == Int(8)),
        Assert(move2 >= MOVE_MIN),
        Assert(move2 <= MOVE_MAX),
        _assert_grouped_payment(),
        Assert(_paid_with_call() == stake),
        App.globalPut(STAKE_KEY, stake + _paid_with_call()),
        App.globalPut(MOVE2_KEY, move2),
        App.globalPut(LAST_ACTION_KEY, Global.latest_timestamp()),
        Approve(),
    )

    # reveal(move, secret)  [p1, after p2 played]
    move_arg = Txn.application_args[1]
    secret_arg = Txn.application_args[2]
    move1 = ScratchVar(TealType.uint64)
    pot = ScratchVar(TealType.uint64)
    same_parity = (move1.load() % Int(2)) == (c2 % Int(2))
    p1_wins = Or(
        And(same_parity, move1.load() < c2),
        And(Not(same_parity), move1.load() > c2),
    )
    do_reveal = Seq(
        Assert(is_p1),
        Assert(stake > Int(0)),
        Assert(c2 != Int(0)),
        Assert(Len(move_arg) == Int(8)),
        Assert(Len(secret_arg) == Int(32)),
        Assert(Sha256(Concat(move_arg, secret_arg)) == App.globalGet(COMMIT_KEY)),
        move1.store(Btoi(move_arg)),
        Assert(move1.load() >= MOVE_MIN),
        Assert(move1.load() <= MOVE_MAX),
        pot.store(stake),
        App.globalPut(STAKE_KEY, Int(0)),
        If(move1.load() == c2)
        .Then(Seq(
            _pay(App.globalGet(PLAYER1_KEY), pot.load() / Int(2)),
            _pay(App.globalGet(PLAYER2_KEY), pot.load() / Int(2)),
        ))
        .ElseIf(p1_wins)
        .Then(_pay(App.globalGet(PLAYER1_KEY), pot.load()))
        .Else(_pay(App.globalGet(PLAYER2_KEY), pot.load())),
        Approve(),
    )

    # j1_timeout  [p2, p1 never revealed]
    do_j1_timeout = Seq(
        Assert(is_p2),
        Assert(stake > Int(0)),
        Assert(c2 != Int(0)),
        Assert(timed_out),
        pot.store(stake),
        App.globalPut(STAKE_KEY, Int(0)),
        _pay(App.globalGet(PLAYER2_KEY), pot.load()),
        Approve(),
    )

    # j2_timeout  [p1, p2 never played]
    do_j2_timeout = Seq(
        Assert(is_p1),
        Assert(stake > Int(0)),
        Assert(c2 == Int(0)),
        Assert(timed_out),
        pot.store(stake),
        App.globalPut(STAKE_KEY, Int(0)),
        _pay(App.globalGet(PLAYER1_KEY), pot.load()),
        Approve(),
    )

    on_noop = Cond(
        [Txn.application_args[0] == Bytes("fund"), do_fund],
        [Txn.application_args[0] == Bytes("play"), do_play],
        [Txn.application_args[0] == Bytes("reveal"), do_reveal],
        [Txn.application_args[0] == Bytes("j1_timeout"), do_j1_timeout],
        [Txn.application_args[0] == Bytes("j2_timeout"), do_j2_timeout],
    )

    program = Cond(
        [Txn.application_id() == Int(0), on_create],
        [Txn.on_completion() == OnComplete.NoOp, on_noop],
        [Int(1), Reject()],
    )
    return program


def clear_state_program() -> Expr:
    return Approve()


def compile_sources() -> tuple[str, str]:
    approval = compileTeal(approval_program(), mode=Mode.Application, version=TEAL_VERSION)
    clear = compileTeal(clear_state_program(), mode=Mode.Application, version=TEAL_VERSION)
    return approval, clear


if __name__ == "__main__":
    print(compile_sources()[0])
